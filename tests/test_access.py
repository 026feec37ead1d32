import pytest

from conftest import WORKSPACE, actor, make_note
from stash.access import (
    AccessControl,
    can_manage_folder,
    can_mutate_note,
    can_read_note,
    can_view_folder,
    note_owner_id,
    role_at_least,
)
from stash.errors import AuthorizationError, ValidationError
from stash.models import AccessContext, Folder, FolderRole

PRODUCT = Folder(id="f-product", workspace_id=WORKSPACE, name="Product")


def _context(role):
    return AccessContext(
        role_by_folder_id={"f-product": role},
        role_by_project_name={"product": role},
    )


def test_note_owner_id_fallback_order():
    assert note_owner_id(make_note("a", owner="u1", created_by_user_id="u2")) == "u1"
    assert note_owner_id(make_note("b", owner=None, created_by_user_id="u2")) == "u2"
    assert note_owner_id(make_note("c", owner=None, metadata={"actorUserId": "u3"})) == "u3"
    assert note_owner_id(make_note("d", owner=None)) == ""
    assert note_owner_id(None) == ""


@pytest.mark.parametrize("role", ["owner", "admin"])
def test_privileged_actor_passes_every_predicate(role):
    admin = actor("someone", role=role)
    note = make_note("n1", owner="other", project="Secret")
    assert can_read_note(note, admin)
    assert can_mutate_note(note, admin)
    assert can_view_folder(PRODUCT, admin)
    assert can_manage_folder(PRODUCT, admin)


def test_owner_can_read_and_mutate_own_note_without_folder_role():
    note = make_note("n1", owner="user-1", project="Unshared")
    assert can_read_note(note, actor("user-1"), AccessContext())
    assert can_mutate_note(note, actor("user-1"), AccessContext())


def test_actor_without_user_id_is_denied():
    note = make_note("n1", owner="", project="Product")
    anonymous = actor(None)
    assert not can_read_note(note, anonymous, _context(FolderRole.MANAGER))
    assert not can_view_folder(PRODUCT, anonymous, _context(FolderRole.MANAGER))


def test_folder_roles_gate_read_and_mutate():
    note = make_note("n1", owner="other", project="product")
    member = actor("user-1")

    assert can_read_note(note, member, _context(FolderRole.VIEWER))
    assert not can_mutate_note(note, member, _context(FolderRole.VIEWER))
    assert can_mutate_note(note, member, _context(FolderRole.EDITOR))
    assert not can_read_note(note, member, AccessContext())
    assert not can_read_note(note, member, None)


def test_folder_predicates_use_folder_id_roles():
    member = actor("user-1")
    assert can_view_folder(PRODUCT, member, _context(FolderRole.VIEWER))
    assert not can_manage_folder(PRODUCT, member, _context(FolderRole.EDITOR))
    assert can_manage_folder(PRODUCT, member, _context(FolderRole.MANAGER))
    assert not can_view_folder(PRODUCT, member, None)


def test_role_at_least_handles_strings_and_unknowns():
    assert role_at_least("manager", FolderRole.EDITOR)
    assert role_at_least(FolderRole.EDITOR, FolderRole.EDITOR)
    assert not role_at_least("viewer", FolderRole.EDITOR)
    assert not role_at_least("superuser", FolderRole.VIEWER)
    assert not role_at_least(None, FolderRole.VIEWER)


@pytest.mark.asyncio
async def test_build_access_context_joins_memberships_to_folder_names(folder_repo, collab_repo, product_workspace):
    """Roles are keyed by folder id and by lower-cased folder name."""
    # Arrange
    access = AccessControl(folder_repo, collab_repo)

    # Act
    ctx = await access.build_access_context(actor("editor"))

    # Assert
    assert ctx.role_by_folder_id == {"f-product": FolderRole.EDITOR}
    assert ctx.role_by_project_name == {"product": FolderRole.EDITOR}
    assert ctx.role_for_project("  PRODUCT ") == FolderRole.EDITOR
    assert ctx.role_for_project("private") is None


@pytest.mark.asyncio
async def test_build_access_context_skips_lookups_for_privileged(folder_repo, collab_repo):
    access = AccessControl(folder_repo, collab_repo)

    ctx = await access.build_access_context(actor("boss", role="owner"))

    assert ctx.role_by_folder_id == {}
    assert collab_repo.membership_calls == 0
    assert folder_repo.list_calls == 0


@pytest.mark.asyncio
async def test_access_context_is_rebuilt_per_call(folder_repo, collab_repo, product_workspace):
    """A role granted between two operations is visible to the second one."""
    access = AccessControl(folder_repo, collab_repo)
    note = make_note("n-private", owner="manager", project="Private")

    with pytest.raises(AuthorizationError):
        await access.assert_can_read_note(note, actor("viewer"))

    collab_repo.grant("f-private", "viewer", FolderRole.VIEWER)
    await access.assert_can_read_note(note, actor("viewer"))
    assert collab_repo.membership_calls == 2


@pytest.mark.asyncio
async def test_assert_can_mutate_note_denies_viewer(folder_repo, collab_repo, product_workspace):
    access = AccessControl(folder_repo, collab_repo)
    note = make_note("n-roadmap", owner="manager", project="Product")

    with pytest.raises(AuthorizationError):
        await access.assert_can_mutate_note(note, actor("viewer"))
    await access.assert_can_mutate_note(note, actor("editor"))


@pytest.mark.asyncio
async def test_folder_assertions(folder_repo, collab_repo, product_workspace):
    access = AccessControl(folder_repo, collab_repo)
    product = folder_repo.folders["f-product"]

    await access.assert_can_view_folder(product, actor("viewer"))
    await access.assert_can_manage_folder(product, actor("manager"))
    with pytest.raises(AuthorizationError):
        await access.assert_can_manage_folder(product, actor("editor"))
    with pytest.raises(AuthorizationError, match="Folder not found"):
        await access.assert_can_view_folder(None, actor("viewer"))


def test_assert_workspace_manager(folder_repo, collab_repo):
    access = AccessControl(folder_repo, collab_repo)
    access.assert_workspace_manager(actor("a", role="admin"))
    with pytest.raises(AuthorizationError):
        access.assert_workspace_manager(actor("m", role="member"))


@pytest.mark.asyncio
async def test_resolve_folder_by_id_or_name(folder_repo, collab_repo, product_workspace):
    access = AccessControl(folder_repo, collab_repo)

    assert (await access.resolve_folder_by_id_or_name("f-product", WORKSPACE)).id == "f-product"
    assert (await access.resolve_folder_by_id_or_name("Product", WORKSPACE)).id == "f-product"
    assert (await access.resolve_folder_by_id_or_name("pRoDuCt", WORKSPACE)).id == "f-product"
    assert await access.resolve_folder_by_id_or_name("Nope", WORKSPACE) is None
    with pytest.raises(ValidationError):
        await access.resolve_folder_by_id_or_name("  ", WORKSPACE)


@pytest.mark.asyncio
async def test_resolve_canonical_project_name(folder_repo, collab_repo, product_workspace):
    access = AccessControl(folder_repo, collab_repo)

    assert await access.resolve_canonical_project_name("f-product", WORKSPACE) == "Product"
    assert await access.resolve_canonical_project_name(" product ", WORKSPACE) == "Product"
    assert await access.resolve_canonical_project_name(" Unknown ", WORKSPACE) == "Unknown"
    assert await access.resolve_canonical_project_name("", WORKSPACE) == ""
