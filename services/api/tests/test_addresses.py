import pytest
from services.api.app.models.order import Address
from services.api.app.services.addresses import AddressBook
from services.api.app.services.errors import AddressNotFoundError


def _address(street: str, is_default: bool = False) -> Address:
    return Address(
        street=street, city="Pune", state="MH", pincode="411001", is_default=is_default
    )


def _defaults(book: AddressBook, user_id: str = "u-1") -> list[str]:
    return [a.street for a in book.addresses_for(user_id) if a.is_default]


def test_first_address_becomes_default() -> None:
    book = AddressBook()
    home = book.add("u-1", _address("Home"))
    book.add("u-1", _address("Office"))

    assert home.id
    assert _defaults(book) == ["Home"]
    assert book.default_for("u-1").street == "Home"


def test_adding_a_default_moves_the_flag() -> None:
    book = AddressBook()
    book.add("u-1", _address("Home"))
    book.add("u-1", _address("Office", is_default=True))

    assert _defaults(book) == ["Office"]


def test_set_default_and_update() -> None:
    book = AddressBook()
    book.add("u-1", _address("Home"))
    office = book.add("u-1", _address("Office"))

    book.set_default("u-1", office.id)
    assert _defaults(book) == ["Office"]

    updated = book.update("u-1", office.id, {"landmark": "Near metro", "id": "hijack"})
    assert updated.id == office.id
    assert updated.landmark == "Near metro"
    assert updated.is_default is True


def test_deleting_default_promotes_first_remaining() -> None:
    book = AddressBook()
    home = book.add("u-1", _address("Home"))
    book.add("u-1", _address("Office"))
    book.add("u-1", _address("Studio"))

    book.delete("u-1", home.id)

    assert _defaults(book) == ["Office"]


def test_deleting_last_address_leaves_no_default() -> None:
    book = AddressBook()
    home = book.add("u-1", _address("Home"))
    book.delete("u-1", home.id)

    assert book.addresses_for("u-1") == []
    assert book.default_for("u-1") is None


def test_books_are_per_user() -> None:
    book = AddressBook()
    book.add("u-1", _address("Home"))
    book.add("u-2", _address("Elsewhere"))

    assert _defaults(book, "u-1") == ["Home"]
    assert _defaults(book, "u-2") == ["Elsewhere"]


def test_unknown_address() -> None:
    book = AddressBook()
    book.add("u-1", _address("Home"))

    with pytest.raises(AddressNotFoundError):
        book.set_default("u-1", "addr_missing")
    with pytest.raises(AddressNotFoundError):
        book.delete("u-2", "addr_missing")
