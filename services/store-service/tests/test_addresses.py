import pytest

from errors import NotFoundError
from schemas import AddressCreate, AddressUpdate
from services.address_service import AddressService
from tests.conftest import auth_headers


def address(label, **overrides):
    data = {
        "label": label,
        "full_name": "Juan Dela Cruz",
        "phone": "09171234567",
        "street": "Ayala Avenue",
        "city": "Makati",
        "state": "Metro Manila",
        "zip_code": "1226",
    }
    data.update(overrides)
    return AddressCreate(**data)


def defaults(addresses):
    return [a.label for a in addresses if a.is_default]


@pytest.fixture
def book():
    return AddressService()


def test_first_address_becomes_default(db, book, make_user):
    user = make_user()

    result = book.add_address(db, user.id, address("Home"))
    result = book.add_address(db, user.id, address("Office"))

    assert defaults(result) == ["Home"]


def test_new_default_replaces_old(db, book, make_user):
    user = make_user()
    book.add_address(db, user.id, address("Home"))

    result = book.add_address(db, user.id, address("Office", is_default=True))

    assert defaults(result) == ["Office"]


def test_update_changes_default_and_fields(db, book, make_user):
    user = make_user()
    book.add_address(db, user.id, address("Home"))
    office = book.add_address(db, user.id, address("Office"))[1]

    result = book.update_address(db, user.id, office.id, AddressUpdate(is_default=True, city="Taguig"))

    assert defaults(result) == ["Office"]
    assert [a.city for a in result if a.label == "Office"] == ["Taguig"]


def test_unsetting_only_default_keeps_one(db, book, make_user):
    user = make_user()
    home = book.add_address(db, user.id, address("Home"))[0]

    result = book.update_address(db, user.id, home.id, AddressUpdate(is_default=False))

    assert defaults(result) == ["Home"]


def test_deleting_default_promotes_another(db, book, make_user):
    user = make_user()
    home = book.add_address(db, user.id, address("Home"))[0]
    book.add_address(db, user.id, address("Office"))

    result = book.delete_address(db, user.id, home.id)

    assert defaults(result) == ["Office"]
    assert book.delete_address(db, user.id, result[0].id) == []


def test_other_users_addresses_are_not_found(db, book, make_user):
    owner = make_user()
    home = book.add_address(db, owner.id, address("Home"))[0]

    with pytest.raises(NotFoundError):
        book.delete_address(db, make_user().id, home.id)


def test_address_api(client, make_user):
    headers = auth_headers(make_user())
    body = address("Home").model_dump()

    response = client.post("/addresses", json=body, headers=headers)
    assert response.status_code == 201
    home = response.json()[0]
    assert home["is_default"] is True

    response = client.put(f"/addresses/{home['id']}", json={"label": "Condo"}, headers=headers)
    assert response.json()[0]["label"] == "Condo"

    assert client.delete(f"/addresses/{home['id']}", headers=headers).json() == []
    assert client.delete(f"/addresses/{home['id']}", headers=headers).status_code == 404
