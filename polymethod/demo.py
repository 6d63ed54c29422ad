"""Worked examples of open methods, runnable from the command line."""

from __future__ import annotations

import argparse
import sys
from typing import Callable, Dict, List, Optional, TextIO

from .errors import DispatchNotImplementedError
from .method import Method, Virtual
from .registry import Registry

# Marker for an ordinary (non-virtual) parameter holding an output stream.
_STREAM = object


def _stream(out: Optional[TextIO]) -> TextIO:
    return out if out is not None else sys.stdout


def hello_world(out: Optional[TextIO] = None) -> None:
    """Single and multiple dispatch on a small animal hierarchy, with ``next``."""
    out = _stream(out)
    registry = Registry("hello_world")

    class Animal:
        def __init__(self, name: str) -> None:
            self.name = name

    class Cat(Animal):
        pass

    class Dog(Animal):
        pass

    class Bulldog(Dog):
        pass

    poke = Method("poke", (_STREAM, Virtual(Animal)), registry=registry)

    @poke.override(Cat)
    def poke_cat(os, cat):
        os.write(f"{cat.name} hisses")

    @poke.override(Dog)
    def poke_dog(os, dog):
        os.write(f"{dog.name} barks")

    @poke.override(Bulldog)
    def poke_bulldog(os, dog):
        poke.next(poke_bulldog)(os, dog)
        os.write(" and bites back")

    registry.use_classes(Animal, Cat, Dog, Bulldog)

    encounter = Method(
        "encounter", (_STREAM, Virtual(Animal), Virtual(Animal)), registry=registry
    )

    @encounter.override(Animal, Animal)
    def encounter_any(os, a, b):
        os.write(f"{a.name} and {b.name} ignore each other")

    @encounter.override(Dog, Dog)
    def encounter_dogs(os, dog1, dog2):
        os.write("Both wag tails")

    @encounter.override(Dog, Cat)
    def encounter_dog_cat(os, dog, cat):
        os.write(f"{dog.name} chases {cat.name}")

    @encounter.override(Cat, Dog)
    def encounter_cat_dog(os, cat, dog):
        os.write(f"{cat.name} runs away from {dog.name}")

    registry.initialize()

    felix = Cat("Felix")
    snoopy = Dog("Snoopy")
    hector = Bulldog("Hector")
    tom = Cat("Tom")

    for animal in (felix, snoopy, hector):
        poke(out, animal)
        out.write(".\n")

    for first, second in ((felix, snoopy), (snoopy, felix), (snoopy, hector), (felix, tom)):
        encounter(out, first, second)
        out.write(".\n")


def custom_rtti_demo(out: Optional[TextIO] = None) -> None:
    """Dispatch driven by a type number stored in each object."""
    out = _stream(out)

    class Animal:
        static_type = 1

        def __init__(self, type_: int) -> None:
            self.type = type_

    class Cat(Animal):
        static_type = 2

        def __init__(self) -> None:
            super().__init__(Cat.static_type)

    class Dog(Animal):
        static_type = 3

        def __init__(self) -> None:
            super().__init__(Dog.static_type)

    by_type = {cls.static_type: cls for cls in (Animal, Cat, Dog)}

    def dynamic_type(obj):
        return by_type[obj.type]

    registry = Registry("custom_registry", type_id=dynamic_type)

    poke = Method("poke", (_STREAM, Virtual(Animal)), registry=registry)

    @poke.override(Cat)
    def poke_cat(os, cat):
        os.write("hiss")

    @poke.override(Dog)
    def poke_dog(os, dog):
        os.write("bark")

    registry.use_classes(Animal, Cat, Dog)
    registry.initialize()

    for animal in (Cat(), Dog()):
        poke(out, animal)
        out.write("\n")


def error_handler_demo(out: Optional[TextIO] = None) -> None:
    """An error handler turning a missing overrider into a RuntimeError."""
    out = _stream(out)
    registry = Registry("error_handler")

    class Animal:
        pass

    class Cat(Animal):
        pass

    class Dog(Animal):
        pass

    registry.use_classes(Animal, Cat, Dog)

    trick = Method("trick", (_STREAM, Virtual(Animal)), registry=registry)

    @trick.override(Dog)
    def trick_dog(os, dog):
        os.write("spin\n")

    registry.initialize()

    def handler(error):
        if isinstance(error, DispatchNotImplementedError):
            raise RuntimeError("not implemented")

    registry.set_error_handler(handler)

    felix = Cat()
    hector, snoopy = Dog(), Dog()

    for animal in (hector, felix, snoopy):
        try:
            trick(out, animal)
        except RuntimeError as error:
            out.write(f"{error}\n")


def namespaces_demo(out: Optional[TextIO] = None) -> None:
    """Classes and overriders declared piecemeal, calling overriders directly."""
    out = _stream(out)
    registry = Registry("namespaces")

    # animals
    class Animal:
        def __init__(self, name: str) -> None:
            self.name = name

    poke = Method("poke", (_STREAM, Virtual(Animal)), registry=registry)

    # felines
    class Cat(Animal):
        pass

    class Cheetah(Cat):
        pass

    registry.use_classes(Animal, Cat, Cheetah)

    @poke.override(Cat)
    def poke_cat(os, cat):
        os.write(f"{cat.name} hisses")

    @poke.override(Cheetah)
    def poke_cheetah(os, cat):
        poke_cat(os, cat)
        os.write(" and runs away")

    # canines
    class Dog(Animal):
        pass

    registry.use_classes(Animal, Dog)

    @poke.override(Dog)
    def poke_dog(os, dog):
        os.write(f"{dog.name} barks")

    # application
    class Bulldog(Dog):
        pass

    registry.use_classes(Dog, Bulldog)

    @poke.override(Bulldog)
    def poke_bulldog(os, dog):
        poke_dog(os, dog)
        os.write(" and bites back")

    registry.initialize()

    animals = (Cat("Felix"), Cheetah("Azaad"), Dog("Snoopy"), Bulldog("Hector"))
    for animal in animals:
        poke(out, animal)
        out.write(".\n")


_DEMOS: Dict[str, Callable[[Optional[TextIO]], None]] = {
    "hello": hello_world,
    "custom-rtti": custom_rtti_demo,
    "error-handler": error_handler_demo,
    "namespaces": namespaces_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run the named demos, or all of them, writing to standard output."""
    parser = argparse.ArgumentParser(
        prog="polymethod-demo", description="Run open method examples."
    )
    parser.add_argument(
        "demos",
        nargs="*",
        metavar="DEMO",
        help=f"demos to run ({', '.join(_DEMOS)}); all by default",
    )
    args = parser.parse_args(argv)

    unknown = [name for name in args.demos if name not in _DEMOS]
    if unknown:
        parser.error(f"unknown demo: {', '.join(unknown)}")

    names = args.demos or list(_DEMOS)
    for position, name in enumerate(names):
        if position:
            sys.stdout.write("\n")
        _DEMOS[name](sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())