"""Tests for the check registry and user accounts."""

from __future__ import annotations

from typing import Any

import pytest

from pingwatch.accounts.users import UserService
from pingwatch.auth.security import random_id
from pingwatch.auth.tokens import TokenAuthorizer
from pingwatch.checks.models import Check, hostname_of, parse_check_fields
from pingwatch.checks.registry import CheckRegistry
from pingwatch.errors import Conflict, Forbidden, NotFound, PingwatchError, Unauthorized, ValidationError
from pingwatch.storage.records import RecordStore

from tests.conftest import PASSWORD, PHONE, make_check

OTHER_PHONE = "5559876543"

CHECK_FIELDS: dict[str, Any] = {
    "protocol": "https",
    "url": "example.com/status",
    "method": "get",
    "successCodes": [200, 201],
    "timeoutSeconds": 3,
}


def _other_user_token(users: UserService, authorizer: TokenAuthorizer) -> str:
    users.create({
        "firstname": "Grace", "lastname": "Hopper", "phone": OTHER_PHONE,
        "password": "cobol", "tosAgreement": True,
    })
    return authorizer.issue(OTHER_PHONE, "cobol").id


# ── Model rules ──────────────────────────────────────────────────────────────


class TestCheckModel:
    def test_from_record_defaults(self) -> None:
        check = Check.from_record(make_check())
        assert check.state == "down"
        assert check.last_checked is None
        assert check.target == "http://example.com/health"

    def test_round_trip(self) -> None:
        data = make_check(state="up", lastChecked=1234.5)
        assert Check.from_record(data).to_dict() == data

    def test_non_positive_last_checked_means_never_probed(self) -> None:
        assert Check.from_record(make_check(lastChecked=0)).last_checked is None
        assert Check.from_record(make_check(lastChecked=False)).last_checked is None

    def test_unknown_state_defaults_to_down(self) -> None:
        assert Check.from_record(make_check(state="sideways")).state == "down"

    @pytest.mark.parametrize("field,value", [
        ("id", "short"),
        ("userPhone", "123"),
        ("protocol", "ftp"),
        ("url", "   "),
        ("method", "patch"),
        ("successCodes", []),
        ("successCodes", ["200"]),
        ("timeoutSeconds", 0),
        ("timeoutSeconds", 6),
        ("timeoutSeconds", 2.5),
        ("timeoutSeconds", True),
    ])
    def test_invalid_fields(self, field: str, value: Any) -> None:
        with pytest.raises(ValidationError, match=field):
            Check.from_record(make_check(**{field: value}))

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError):
            Check.from_record(["nope"])

    def test_parse_fields_requires_all_on_create(self) -> None:
        with pytest.raises(ValidationError, match="timeoutSeconds"):
            parse_check_fields({k: v for k, v in CHECK_FIELDS.items() if k != "timeoutSeconds"}, required=True)

    def test_parse_fields_update_needs_one(self) -> None:
        with pytest.raises(ValidationError, match="Missing fields to update"):
            parse_check_fields({}, required=False)
        assert parse_check_fields({"timeoutSeconds": 5}, required=False) == {"timeoutSeconds": 5}

    def test_hostname_of(self) -> None:
        assert hostname_of("https", "example.com:8443/a?b=1") == "example.com"
        assert hostname_of("http", "") == ""
        assert hostname_of("http", "example.com:abc") == ""

    def test_parse_fields_rejects_unrequestable_target(self) -> None:
        with pytest.raises(ValidationError, match="url"):
            parse_check_fields({**CHECK_FIELDS, "url": "example.com:abc"}, required=True)


# ── Registry ─────────────────────────────────────────────────────────────────


class TestCreate:
    def test_create_persists_and_links(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        assert len(check.id) == 20
        assert check.state == "down"
        stored = store.read("checks", check.id)
        assert stored["userPhone"] == PHONE
        assert stored["successCodes"] == [200, 201]
        assert "lastChecked" not in stored
        assert store.read("users", PHONE)["checks"] == [check.id]

    def test_quota(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        for _ in range(5):
            registry.create(PHONE, CHECK_FIELDS)
        before = store.list("checks")
        with pytest.raises(ValidationError, match="maximum number \\(5\\)"):
            registry.create(PHONE, CHECK_FIELDS)
        assert store.list("checks") == before
        assert len(store.read("users", PHONE)["checks"]) == 5

    def test_dns_preflight(self, store: RecordStore, authorizer: TokenAuthorizer, token: str) -> None:
        seen = []

        def _resolver(hostname: str) -> bool:
            seen.append(hostname)
            return False

        registry = CheckRegistry(store, authorizer, resolver=_resolver)
        with pytest.raises(ValidationError, match="DNS"):
            registry.create(PHONE, CHECK_FIELDS)
        assert seen == ["example.com"]
        assert store.list("checks") == set()

    def test_invalid_fields(self, registry: CheckRegistry, token: str) -> None:
        with pytest.raises(ValidationError):
            registry.create(PHONE, {**CHECK_FIELDS, "method": "head"})

    def test_invalid_port(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        with pytest.raises(ValidationError, match="url"):
            registry.create(PHONE, {**CHECK_FIELDS, "url": "example.com:abc"})
        assert store.list("checks") == set()

    def test_unknown_user(self, registry: CheckRegistry) -> None:
        with pytest.raises(Unauthorized):
            registry.create(PHONE, CHECK_FIELDS)

    def test_rolls_back_when_user_link_fails(
        self, registry: CheckRegistry, store: RecordStore, token: str, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_modify = store.modify

        def _modify(collection, record_id, mutate):
            if collection == "users":
                raise NotFound("user vanished")
            return real_modify(collection, record_id, mutate)

        monkeypatch.setattr(store, "modify", _modify)
        with pytest.raises(NotFound):
            registry.create(PHONE, CHECK_FIELDS)
        assert store.list("checks") == set()


class TestReadUpdateDelete:
    def test_get_owned(self, registry: CheckRegistry, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        assert registry.get(check.id, token).to_dict() == check.to_dict()

    def test_get_forbidden_for_other_user(
        self, registry: CheckRegistry, users: UserService, authorizer: TokenAuthorizer, token: str,
    ) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        other = _other_user_token(users, authorizer)
        with pytest.raises(Forbidden):
            registry.get(check.id, other)

    def test_get_missing(self, registry: CheckRegistry, token: str) -> None:
        with pytest.raises(NotFound):
            registry.get(random_id(), token)
        with pytest.raises(ValidationError):
            registry.get("bad", token)

    def test_update_merges_only_supplied_fields(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        store.modify("checks", check.id, lambda d: d.update(state="up", lastChecked=99.0))

        updated = registry.update(check.id, token, {"timeoutSeconds": 5, "url": "example.org"})
        assert updated.timeout_seconds == 5
        assert updated.url == "example.org"
        assert updated.method == "get"
        assert updated.state == "up"
        assert updated.last_checked == 99.0

    def test_update_rejects_unrequestable_url(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        with pytest.raises(ValidationError, match="url"):
            registry.update(check.id, token, {"url": "example.com:abc"})
        assert store.read("checks", check.id)["url"] == "example.com/status"

    def test_update_repeats_dns_preflight(self, store: RecordStore, authorizer: TokenAuthorizer, token: str) -> None:
        resolvable = {"example.com"}
        registry = CheckRegistry(store, authorizer, resolver=lambda hostname: hostname in resolvable)
        check = registry.create(PHONE, CHECK_FIELDS)

        with pytest.raises(ValidationError, match="DNS"):
            registry.update(check.id, token, {"url": "nowhere.invalid"})
        assert store.read("checks", check.id)["url"] == "example.com/status"

        assert registry.update(check.id, token, {"timeoutSeconds": 4}).timeout_seconds == 4

    def test_update_requires_a_field(self, registry: CheckRegistry, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        with pytest.raises(ValidationError):
            registry.update(check.id, token, {})

    def test_update_forbidden(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        with pytest.raises(Forbidden):
            registry.update(check.id, "", {"timeoutSeconds": 5})
        assert store.read("checks", check.id)["timeoutSeconds"] == 3

    def test_delete_unlinks(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        keep = registry.create(PHONE, CHECK_FIELDS)
        gone = registry.create(PHONE, CHECK_FIELDS)
        registry.delete(gone.id, token)
        assert store.list("checks") == {keep.id}
        assert store.read("users", PHONE)["checks"] == [keep.id]

    def test_delete_forbidden(
        self, registry: CheckRegistry, users: UserService, authorizer: TokenAuthorizer, store: RecordStore, token: str,
    ) -> None:
        check = registry.create(PHONE, CHECK_FIELDS)
        other = _other_user_token(users, authorizer)
        with pytest.raises(Forbidden):
            registry.delete(check.id, other)
        assert check.id in store.list("checks")

    def test_list_for_user(self, registry: CheckRegistry, store: RecordStore, token: str) -> None:
        a = registry.create(PHONE, CHECK_FIELDS)
        b = registry.create(PHONE, CHECK_FIELDS)
        (store.base_dir / "checks" / f"{b.id}.json").write_text("garbage", encoding="utf-8")
        assert [c.id for c in registry.list_for_user(PHONE, token)] == [a.id]


# ── Users ────────────────────────────────────────────────────────────────────


class TestUsers:
    def test_create_hides_password(self, user: dict[str, Any], store: RecordStore) -> None:
        assert "hashedPassword" not in user
        assert user["checks"] == []
        stored = store.read("users", PHONE)
        assert stored["hashedPassword"] and stored["hashedPassword"] != PASSWORD
        assert stored["tosAgreement"] is True

    def test_duplicate(self, users: UserService, user: dict[str, Any]) -> None:
        with pytest.raises(Conflict):
            users.create({
                "firstname": "A", "lastname": "B", "phone": PHONE, "password": "x", "tosAgreement": True,
            })

    @pytest.mark.parametrize("missing", ["firstname", "lastname", "phone", "password", "tosAgreement"])
    def test_missing_fields(self, users: UserService, missing: str) -> None:
        payload = {"firstname": "A", "lastname": "B", "phone": PHONE, "password": "x", "tosAgreement": True}
        payload.pop(missing)
        with pytest.raises(ValidationError):
            users.create(payload)

    def test_get_requires_token(self, users: UserService, token: str) -> None:
        assert users.get(PHONE, token)["firstname"] == "Ada"
        with pytest.raises(Forbidden):
            users.get(PHONE, "")

    def test_update(self, users: UserService, authorizer: TokenAuthorizer, token: str) -> None:
        updated = users.update({"phone": PHONE, "lastname": "Byron", "password": "new-pass"}, token)
        assert updated["lastname"] == "Byron"
        assert updated["firstname"] == "Ada"
        assert authorizer.issue(PHONE, "new-pass").phone == PHONE

    def test_update_nothing(self, users: UserService, token: str) -> None:
        with pytest.raises(ValidationError, match="Missing fields"):
            users.update({"phone": PHONE}, token)

    def test_delete_cascades_checks(
        self, users: UserService, registry: CheckRegistry, store: RecordStore, token: str,
    ) -> None:
        registry.create(PHONE, CHECK_FIELDS)
        registry.create(PHONE, CHECK_FIELDS)
        users.delete(PHONE, token)
        assert store.list("users") == set()
        assert store.list("checks") == set()

    def test_delete_reports_failed_cascade(
        self, users: UserService, registry: CheckRegistry, store: RecordStore, token: str,
    ) -> None:
        kept = registry.create(PHONE, CHECK_FIELDS)
        missing = registry.create(PHONE, CHECK_FIELDS)
        store.delete("checks", missing.id)

        with pytest.raises(PingwatchError, match=missing.id):
            users.delete(PHONE, token)
        assert store.list("users") == set()
        assert kept.id not in store.list("checks")
