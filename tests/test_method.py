import pytest

from polymethod.errors import (
    AmbiguousDispatchError,
    DispatchNotImplementedError,
    NotInitializedError,
    UnknownClassError,
)
from polymethod.method import Method, Virtual
from polymethod.registry import Registry
from polymethod.virtual_ptr import VirtualPtr, final_virtual_ptr, make_virtual


# ---------------------------------------------------------------------------
# animals


class Animal:
    def __init__(self, name=""):
        self.name = name


class Property:
    owner = "Bill"


class Dog(Property, Animal):
    pass


class Cat(Property, Animal):
    pass


class Bulldog(Dog):
    pass


@pytest.fixture
def reg():
    return Registry("test")


def test_cast_args(reg):
    reg.use_classes(Animal, Dog, Cat)
    name = Method("name", (Virtual(Animal),), registry=reg)

    @name.override(Cat)
    def name_cat(cat):
        return cat.owner + "'s cat " + cat.name

    @name.override(Dog)
    def name_dog(dog):
        return dog.owner + "'s dog " + dog.name

    reg.initialize()
    assert name(Dog("Spot")) == "Bill's dog Spot"
    assert name(Cat("Felix")) == "Bill's cat Felix"


# ---------------------------------------------------------------------------
# matrices

MATRIX_MATRIX = "matrix-matrix"
DIAGONAL_DIAGONAL = "diagonal-diagonal"
SCALAR_MATRIX = "scalar-matrix"
SCALAR_DIAGONAL = "scalar-diagonal"
MATRIX_SCALAR = "matrix-scalar"
DIAGONAL_SCALAR = "diagonal-scalar"
NONE = "none"


class Matrix:
    pass


class DenseMatrix(Matrix):
    pass


class DiagonalMatrix(Matrix):
    pass


def _matrix_methods(reg):
    reg.use_classes(Matrix, DenseMatrix, DiagonalMatrix)
    mm = Method("times", (Virtual(Matrix), Virtual(Matrix)), registry=reg)
    sm = Method("times", (float, Virtual(Matrix)), registry=reg)
    ms = Method("times", (Virtual(Matrix), float), registry=reg)

    mm.add_overrider(lambda a, b: (MATRIX_MATRIX, NONE), (Matrix, Matrix))
    mm.add_overrider(
        lambda a, b: (DIAGONAL_DIAGONAL, MATRIX_MATRIX),
        (DiagonalMatrix, DiagonalMatrix),
    )
    sm.add_overrider(lambda s, m: (SCALAR_MATRIX, NONE), (Matrix,))
    sm.add_overrider(lambda s, m: (SCALAR_DIAGONAL, SCALAR_MATRIX), (DiagonalMatrix,))
    ms.add_overrider(lambda m, s: (DIAGONAL_SCALAR, MATRIX_SCALAR), (DiagonalMatrix,))
    ms.add_overrider(lambda m, s: (MATRIX_SCALAR, NONE), (Matrix,))
    return mm, sm, ms


def test_simple_matrices(reg):
    mm, sm, ms = _matrix_methods(reg)
    report = reg.initialize().report
    assert report.not_implemented == 0
    assert report.ambiguous == 0

    dense, diag = DenseMatrix(), DiagonalMatrix()
    assert mm(dense, dense) == (MATRIX_MATRIX, NONE)
    assert mm(diag, diag) == (DIAGONAL_DIAGONAL, MATRIX_MATRIX)
    assert mm(diag, dense) == (MATRIX_MATRIX, NONE)
    assert sm(2, dense) == (SCALAR_MATRIX, NONE)
    assert ms(dense, 2) == (MATRIX_SCALAR, NONE)
    assert ms(diag, 2) == (DIAGONAL_SCALAR, MATRIX_SCALAR)


def test_finalize_discards_tables(reg):
    mm, _, _ = _matrix_methods(reg)
    reg.initialize()
    assert reg.vptrs
    reg.finalize()
    assert reg.vptrs == {}
    with pytest.raises(NotInitializedError):
        mm(DenseMatrix(), DenseMatrix())


# ---------------------------------------------------------------------------
# next


def test_next_fn(reg):
    reg.use_classes(Animal, Dog, Bulldog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)

    @poke.override(Dog)
    def poke_dog(dog):
        return "bark"

    @poke.override(Bulldog)
    def poke_bulldog(dog):
        return poke.next(poke_bulldog)(dog) + " and bite back"

    reg.initialize()
    assert poke(Dog()) == "bark"
    assert poke(Bulldog()) == "bark and bite back"


def test_next_without_base_overrider_is_not_implemented(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)

    @poke.override(Dog)
    def poke_dog(dog):
        return poke.next(poke_dog)(dog)

    reg.initialize()
    with pytest.raises(DispatchNotImplementedError):
        poke(Dog())


def test_next_of_unknown_function(reg):
    reg.use_classes(Animal)
    poke = Method("poke", (Virtual(Animal),), registry=reg)
    with pytest.raises(ValueError):
        poke.next(lambda a: a)


def test_next_before_initialize(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)

    @poke.override(Dog)
    def poke_dog(dog):
        return "bark"

    with pytest.raises(NotInitializedError):
        poke.next(poke_dog)(Dog())


# ---------------------------------------------------------------------------
# misc dispatch cases


def test_duplicate_class_registration_and_function_value(reg):
    reg.use_classes(Animal, Dog, Animal)
    poke = Method("poke", (Virtual(Animal),), registry=reg)
    poke.add_overrider(lambda dog: "bark", (Dog,))
    reg.initialize()
    stimulus = poke
    assert stimulus(Dog()) == "bark"
    assert list(map(poke, [Dog(), Dog()])) == ["bark", "bark"]


def test_tuple_return(reg):
    class Test:
        pass

    reg.use_classes(Test)
    foo = Method("foo", (Virtual(Test),), registry=reg)
    foo.add_overrider(lambda t: (1, 2), (Test,))
    reg.initialize()
    assert foo(Test()) == (1, 2)


def test_override_with_all_parameter_types(reg):
    reg.use_classes(Animal, Dog, Cat)
    greet = Method("greet", (str, Virtual(Animal)), registry=reg)

    @greet.override(str, Cat)
    def greet_cat(prefix, cat):
        return prefix + " cat"

    reg.initialize()
    assert greet("hello", Cat()) == "hello cat"


# ---------------------------------------------------------------------------
# rolex


class Role:
    pass


class Employee(Role):
    pass


class Manager(Employee):
    pass


class Founder(Role):
    pass


class Expense:
    pass


class Public(Expense):
    pass


class Bus(Public):
    pass


class Metro(Public):
    pass


class Taxi(Expense):
    pass


class Jet(Expense):
    pass


@pytest.fixture
def rolex(reg):
    reg.use_classes(
        Role, Employee, Manager, Founder, Expense, Public, Bus, Metro, Taxi, Jet
    )
    pay = Method("pay", (Virtual(Employee),), registry=reg)
    approve = Method(
        "approve", (Virtual(Role), Virtual(Expense), float), registry=reg
    )

    @pay.override(Employee)
    def pay_employee(emp):
        return 3000

    @pay.override(Manager)
    def pay_manager(exec_):
        return pay.next(pay_manager)(exec_) + 2000

    approve.add_overrider(lambda r, e, a: False, (Role, Expense))
    approve.add_overrider(lambda r, e, a: True, (Employee, Public))
    approve.add_overrider(lambda r, e, a: True, (Manager, Taxi))
    approve.add_overrider(lambda r, e, a: True, (Founder, Expense))
    report = reg.initialize().report
    return pay, approve, report


def test_rolex_pay(rolex):
    pay, _, _ = rolex
    assert pay(Employee()) == 3000
    assert pay(Manager()) == 5000


@pytest.mark.parametrize(
    "role, expense, expected",
    [
        (Employee, Bus, True),
        (Employee, Metro, True),
        (Employee, Taxi, False),
        (Manager, Taxi, True),
        (Manager, Bus, True),
        (Manager, Jet, False),
        (Founder, Jet, True),
        (Role, Jet, False),
    ],
)
def test_rolex_approve(rolex, role, expense, expected):
    _, approve, _ = rolex
    assert approve(role(), expense(), 100.0) is expected


def test_rolex_approve_with_virtual_ptrs(rolex, reg):
    _, approve, report = rolex
    assert report.ambiguous == 0
    assert approve(
        final_virtual_ptr(Manager(), reg), VirtualPtr(Taxi(), reg), 10.0
    ) is True


# ---------------------------------------------------------------------------
# fight


class Character:
    pass


class Warrior(Character):
    pass


class Device:
    pass


class Hands(Device):
    pass


class Axe(Device):
    pass


class Banana(Device):
    pass


class Creature:
    pass


class Dragon(Creature):
    pass


class Bear(Creature):
    pass


CONGRATULATIONS = (
    "Congratulations! You have just vainquished a dragon with your bare hands"
    " (unbelievable, isn't it?)"
)


@pytest.fixture
def fight(reg):
    reg.use_classes(
        Character, Warrior, Device, Hands, Axe, Banana, Creature, Dragon, Bear
    )
    fight = Method(
        "fight",
        (Virtual(Character), Virtual(Creature), Virtual(Device)),
        registry=reg,
    )
    fight.add_overrider(lambda c, k, d: "are you insane?", (Character, Creature, Banana))
    fight.add_overrider(
        lambda c, k, d: "not agile enough to wield", (Character, Creature, Axe)
    )
    fight.add_overrider(lambda c, k, d: "and cuts it into pieces", (Warrior, Creature, Axe))
    fight.add_overrider(
        lambda c, k, d: "and dies a honorable death", (Warrior, Dragon, Axe)
    )
    fight.add_overrider(lambda c, k, d: CONGRATULATIONS, (Character, Dragon, Hands))
    report = reg.initialize().report
    return fight, report


@pytest.mark.parametrize(
    "character, creature, device, expected",
    [
        (Character, Dragon, Axe, "not agile enough to wield"),
        (Warrior, Bear, Axe, "and cuts it into pieces"),
        (Warrior, Bear, Banana, "are you insane?"),
        (Warrior, Dragon, Axe, "and dies a honorable death"),
        (Character, Dragon, Hands, CONGRATULATIONS),
        (Warrior, Dragon, Hands, CONGRATULATIONS),
    ],
)
def test_fight(fight, character, creature, device, expected):
    method, _ = fight
    assert method(character(), creature(), device()) == expected


def test_fight_not_implemented(fight):
    method, report = fight
    assert report.not_implemented == 1
    assert report.ambiguous == 0
    with pytest.raises(DispatchNotImplementedError) as info:
        method(Character(), Bear(), Hands())
    assert info.value.types == (Character, Bear, Hands)


# ---------------------------------------------------------------------------
# errors


def test_not_implemented_and_error_handler(reg):
    reg.use_classes(Animal, Cat, Dog)
    trick = Method("trick", (list, Virtual(Animal)), registry=reg)

    @trick.override(Dog)
    def trick_dog(out, dog):
        out.append("spin")

    reg.initialize()
    out = []
    with pytest.raises(DispatchNotImplementedError) as info:
        trick(out, Cat())
    assert info.value.types == (Cat,)
    assert info.value.method is trick

    seen = []

    def handler(error):
        seen.append(error)
        if isinstance(error, DispatchNotImplementedError):
            raise RuntimeError("not implemented")

    reg.set_error_handler(handler)
    trick(out, Dog())
    with pytest.raises(RuntimeError, match="not implemented"):
        trick(out, Cat())
    trick(out, Dog())
    assert out == ["spin", "spin"]
    assert len(seen) == 1


def _meet(reg, n2216_returns):
    reg.use_classes(Animal, Dog, Cat)
    meet = Method(
        "meet",
        (Virtual(Animal), Virtual(Animal)),
        returns=Animal if n2216_returns else None,
        registry=reg,
    )
    meet.add_overrider(lambda a, b: "dog first", (Dog, Animal), returns=Dog if n2216_returns else None)
    meet.add_overrider(lambda a, b: "dog second", (Animal, Dog))
    return meet


def test_ambiguous_call(reg):
    meet = _meet(reg, False)
    report = reg.initialize().report
    assert report.ambiguous == 1
    assert meet(Dog(), Cat()) == "dog first"
    assert meet(Cat(), Dog()) == "dog second"
    with pytest.raises(AmbiguousDispatchError):
        meet(Dog(), Dog())


def test_covariant_return_breaks_tie():
    reg = Registry("covariant", n2216=True)
    meet = _meet(reg, True)
    report = reg.initialize().report
    assert report.ambiguous == 0
    assert meet(Dog(), Dog()) == "dog first"


def test_call_before_initialize(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)
    poke.add_overrider(lambda d: "bark", (Dog,))
    with pytest.raises(NotInitializedError):
        poke(Dog())


def test_wrong_argument_count(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)
    poke.add_overrider(lambda d: "bark", (Dog,))
    reg.initialize()
    with pytest.raises(TypeError):
        poke(Dog(), 1)


def test_unregistered_argument(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal),), registry=reg)
    poke.add_overrider(lambda d: "bark", (Dog,))
    reg.initialize()
    with pytest.raises(UnknownClassError):
        poke(object())


def test_unregistered_virtual_type(reg):
    reg.use_classes(Dog)
    Method("poke", (Virtual(Animal),), registry=reg)
    with pytest.raises(UnknownClassError):
        reg.initialize()


def test_overrider_type_must_derive(reg):
    poke = Method("poke", (Virtual(Dog),), registry=reg)
    with pytest.raises(TypeError):
        poke.add_overrider(lambda c: "hiss", (Cat,))


def test_overrider_type_count(reg):
    poke = Method("poke", (Virtual(Animal), Virtual(Animal)), registry=reg)
    with pytest.raises(TypeError):
        poke.add_overrider(lambda a: None, (Dog,))


def test_method_needs_virtual_parameter(reg):
    with pytest.raises(TypeError):
        Method("plain", (int, str), registry=reg)


# ---------------------------------------------------------------------------
# virtual pointers as arguments


def test_virtual_ptr_arguments(reg):
    reg.use_classes(Animal, Dog)
    poke = Method("poke", (Virtual(Animal), list), registry=reg)

    @poke.override(Dog)
    def poke_dog(dog, out):
        out.append(dog.name + " barks")

    reg.initialize()
    out = []
    poke(VirtualPtr(Dog("Snoopy"), reg), out)
    poke(make_virtual(Dog, "Hector", registry=reg), out)
    poke(Dog("Rex"), out)
    assert out == ["Snoopy barks", "Hector barks", "Rex barks"]
    assert poke.name == "poke"
    assert [spec.fn for spec in poke.overriders] == [poke_dog]