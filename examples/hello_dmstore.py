"""Minimal hello-world demo for the DMStore entity store."""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running directly from the repo without installing the package.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from dmstore.core.dmstore import DMStore  # noqa: E402
from dmstore.core.entities import Markup  # noqa: E402


def main() -> int:
    dms = DMStore.create(config={"dmstore": {"backend": "memory", "bootstrap": True}})
    users = dms.store("users")
    groups = dms.store("groups")

    print("[hello] creating users")
    alice = users.create({"username": "alice"}, {"level": "admin"})
    bob = users.create({"username": "bob"})
    users.add_field(alice, "email", "alice@example.org")
    users.add_field(bob, "profile", Markup("<first>Bob</first><last>Stone</last>"))
    users.add_value(alice, "groups", "group", "staff")
    users.add_value(alice, "groups", "group", "editors")

    print("[hello] creating a group")
    staff = groups.create({"groupname": "staff", "owner": "alice"})
    groups.add_child(staff, "members", "member", {"username": "alice"})
    groups.add_child(staff, "members", "member", {"username": "bob"})

    print(f"[users] ids = {users.list_ids()}")
    print(f"[users] usernames = {users.mapping('username')}")
    print(f"[users] bob's last name = {users.get_field(bob, 'profile/last')}")
    print(f"[users] alice's groups = {users.values(alice, 'groups', 'group')}")
    print(f"[groups] members of staff = {groups.child_ids(staff, 'members')}")

    users.set_field(alice, "email", "")
    print(f"[users] alice's email after clearing = {users.get_field(alice, 'email')!r}")

    users.remove_where("username", "bob")
    print(f"[done] remaining users = {users.list_ids()}")
    print(dms.session.serialize(users.document))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
