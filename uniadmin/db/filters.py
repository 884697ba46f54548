from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_view_scope(execute_state) -> None:
    """
    Transparent row scoping for read requests.

    Read routes put a `ViewScope` in `Session.info["view_scope"]`; any SELECT of
    the scoped entity then only returns rows the caller may see:
        OWN  -> created_by_id == caller
        UNIT -> unit_id == caller's unit
        ALL  -> no criteria
    Rows outside the scope surface as "not found".
    """

    if not execute_state.is_select:
        return

    scope = execute_state.session.info.get("view_scope")
    if scope is None:
        return

    # Local imports to avoid cycles.
    from uniadmin.models.enums import EntityKind  # noqa: WPS433
    from uniadmin.models.workflow import Document, Guest, Translation, Visa  # noqa: WPS433
    from uniadmin.security.scope import Visibility  # noqa: WPS433

    models = {
        EntityKind.DOCUMENT: Document,
        EntityKind.GUEST: Guest,
        EntityKind.VISA: Visa,
        EntityKind.TRANSLATION: Translation,
    }
    model = models.get(scope.kind)
    if model is None or scope.visibility is Visibility.ALL:
        return

    stmt = execute_state.statement
    if scope.visibility is Visibility.UNIT:
        unit_id = scope.unit_id
        stmt = stmt.options(
            with_loader_criteria(model, lambda cls: cls.unit_id == unit_id, include_aliases=True),
        )
    else:
        user_id = scope.user_id
        stmt = stmt.options(
            with_loader_criteria(model, lambda cls: cls.created_by_id == user_id, include_aliases=True),
        )

    execute_state.statement = stmt
