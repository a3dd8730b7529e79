"""Host collaborators used across the suite.

A toy vending machine and a fake line-oriented file: small call sites that
exercise failure domains, propagation and scoped cleanup the way application
code would.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal

from recourse import FailureDomain, fail, fallible, propagate, scoped, variant


class VendingFailure(FailureDomain):
    InvalidSelection = variant()
    InsufficientFunds = variant(required=Decimal)
    OutOfStock = variant()


class FileFailure(FailureDomain):
    EndOfInput = variant()
    ResourceClosed = variant()


class GeneralFailure(FailureDomain):
    SomeError = variant()


@dataclass(frozen=True)
class Item:
    price: Decimal
    count: int


@dataclass
class VendingMachine:
    """Vends from an inventory of frozen items, replacing an item on each sale."""

    inventory: dict[str, Item]
    deposited: Decimal = Decimal("0")

    def vend(self, name: str) -> str:
        item = self.inventory.get(name)
        if item is None:
            fail(VendingFailure.InvalidSelection())
        if item.count <= 0:
            fail(VendingFailure.OutOfStock())
        if self.deposited < item.price:
            fail(VendingFailure.InsufficientFunds(required=item.price - self.deposited))

        self.deposited -= item.price
        self.inventory[name] = replace(item, count=item.count - 1)
        return name


FAVORITE_SNACKS = {"Alice": "Chips", "Bob": "Licorice", "Eve": "Pretzels"}


@fallible
def buy_favorite_snack(machine: VendingMachine, person: str) -> str:
    snack = FAVORITE_SNACKS.get(person, "Candy Bar")
    return propagate(fallible(machine.vend)(snack))


@fallible
def fail_if(value: bool) -> None:
    if value:
        fail(GeneralFailure.SomeError())


@dataclass
class FakeFile:
    """A readable resource with a fixed number of remaining lines."""

    name: str
    lines: int
    events: list[str] = field(default_factory=list)
    is_open: bool = False

    @fallible
    def readline(self) -> str:
        if not self.is_open:
            fail(FileFailure.ResourceClosed())
        if self.lines <= 0:
            fail(FileFailure.EndOfInput())
        self.lines -= 1
        return f"line number {self.lines} of text"


def open_file(name: str, *, lines: int, events: list[str]) -> FakeFile:
    file = FakeFile(name=name, lines=lines, events=events, is_open=True)
    events.append(f"open:{name}")
    return file


def close_file(file: FakeFile) -> None:
    file.is_open = False
    file.events.append(f"close:{file.name}")


def read_lines(name: str, *, lines: int, reads: int, events: list[str]) -> list[str]:
    """Open *name*, read it *reads* times, and close it when the scope ends."""
    out: list[str] = []
    with scoped(name) as scope:
        file = open_file(name, lines=lines, events=events)
        scope.register(close_file, file)
        for _ in range(reads):
            out.append(propagate(file.readline()))
            events.append("read")
    return out


def read_all(name: str, *, lines: int, events: list[str]) -> list[str]:
    """Read until the end of input, which ends the loop instead of the caller."""
    out: list[str] = []
    with scoped(name) as scope:
        file = open_file(name, lines=lines, events=events)
        scope.register(close_file, file)
        while (outcome := file.readline()).is_success():
            out.append(propagate(outcome))
        if outcome.failure != FileFailure.EndOfInput():
            propagate(outcome)
    return out
