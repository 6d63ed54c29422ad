# polymethod

Open multi-methods for Python.

An open method is a function that behaves like a virtual method, but is
declared outside the classes it works on, and can dispatch on more than one
argument. Overriders are added for specific combinations of classes. At call
time the most specific overrider for the dynamic classes of the arguments is
selected. An overrider can call the next most specific one.

## Installation

```
pip install polymethod
```

Python 3.10 or newer is required. The package has no dependencies.

## How it works

1. Register the classes that take part in dispatch with a
   `polymethod.registry.Registry`, using `Registry.use_classes`. Each class
   gets as bases the other listed classes it derives from.
2. Declare methods with `polymethod.method.Method(name, params, returns,
   registry)`, marking the dispatching parameters with `Virtual(cls)`. Any
   other entry in `params` is an ordinary parameter.
3. Add overriders with `Method.override(*classes, returns=...)` (a
   decorator) or `Method.add_overrider(fn, types, returns)`. The classes
   are those of the virtual parameters, or of all the parameters.
4. Call `initialize(registry)` (or `Registry.initialize()`) once all
   classes and overriders are known. This builds the inheritance lattice,
   assigns slots and computes the dispatch tables. It returns the
   `polymethod.compiler.Compiler`. Its `report` attribute counts dispatch
   table cells, and the methods that have unimplemented or ambiguous cases.
5. Call the method like a function.

Calling a method before initialization raises `NotInitializedError`. A
call with no applicable overrider raises `DispatchNotImplementedError`. A
call with several equally specific overriders raises
`AmbiguousDispatchError`. An unregistered class found during
initialization raises `UnknownClassError`. All of them derive from
`OpenMethodError`, in `polymethod.errors`.

## Example

```python
from polymethod.method import Method, Virtual
from polymethod.registry import Registry, initialize


class Animal:
    def __init__(self, name):
        self.name = name


class Cat(Animal):
    pass


class Dog(Animal):
    pass


class Bulldog(Dog):
    pass


registry = Registry("animals")
registry.use_classes(Animal, Cat, Dog, Bulldog)

poke = Method("poke", (Virtual(Animal),), str, registry)


@poke.override(Cat, returns=str)
def poke_cat(cat):
    return f"{cat.name} hisses"


@poke.override(Dog, returns=str)
def poke_dog(dog):
    return f"{dog.name} barks"


@poke.override(Bulldog, returns=str)
def poke_bulldog(dog):
    return poke.next(poke_bulldog)(dog) + " and bites back"


encounter = Method(
    "encounter", (Virtual(Animal), Virtual(Animal)), str, registry
)


@encounter.override(Animal, Animal, returns=str)
def ignore(a, b):
    return f"{a.name} and {b.name} ignore each other"


@encounter.override(Dog, Cat, returns=str)
def chase(dog, cat):
    return f"{dog.name} chases {cat.name}"


initialize(registry)

print(poke(Bulldog("Hector")))                 # Hector barks and bites back
print(encounter(Dog("Snoopy"), Cat("Felix")))  # Snoopy chases Felix
print(encounter(Cat("Felix"), Cat("Tom")))     # Felix and Tom ignore each other
```

## Virtual pointers

`polymethod.virtual_ptr.VirtualPtr(obj, registry)` pairs an object with the
v-table of its class. When passed to a method of the same registry, the
stored v-table is used instead of looking the class up again. Attribute
access is forwarded to the object. `VirtualPtr.final(obj, registry)` and
`final_virtual_ptr(obj, registry)` build one from the object's exact class.
`make_virtual(cls, *args, **kwargs)` creates an object and its virtual
pointer in one step, and takes an optional `registry` keyword.

## Registries

Each `Registry` keeps its own classes, methods and dispatch data. Its
options are:

- `trace`: write each initialization step to standard error.
- `n2216`: when several overriders are equally specific, pick the one with
  the most derived registered return class instead of reporting ambiguity.
- `type_id`: the function giving the dispatch class of an object (`type`
  by default).

`default_registry()` returns the shared registry used when none is given.
`Registry.with_policies(name, **options)` returns a new, independent
registry with the same options, some of them overridden.
`Registry.set_error_handler(handler)` installs a callable that is given
each error before it is raised; the handler may raise an exception of its
own instead. `finalize(registry)` discards the dispatch data, and the
registry must be initialized again before use.

## Demonstration

The package ships a few worked examples, run with:

```
polymethod-demo
```

Names of single demos may be given: `hello`, `custom-rtti`,
`error-handler`, `namespaces`.

## Running the tests

```
pip install polymethod[test]
pytest
```