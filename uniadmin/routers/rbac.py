from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Response, status

from uniadmin.schemas.identity import AccessCheckOut, ActionOut, ActiveIn, IdsIn, NodeIn, NodeOut, NodeUpdateIn
from uniadmin.security.dependencies import get_current_principal, get_rbac_service
from uniadmin.security.principal import Principal
from uniadmin.security.rbac import IdentityGraphService, Node

router = APIRouter(prefix="/rbac", tags=["rbac"])


# ---- Nodes: /rbac/{roles|permissions|actions} -----------------------------------------

_NODES = {"roles": Node.ROLE, "permissions": Node.PERMISSION, "actions": Node.ACTION}


def _out(node: Node) -> type[NodeOut]:
    return ActionOut if node is Node.ACTION else NodeOut


def _add_node_routes(segment: str, node: Node) -> None:
    out = _out(node)

    @router.get(f"/{segment}", response_model=list[out], name=f"list_{segment}")
    def list_nodes(
        active_only: bool = False,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> list[Any]:
        return service.list_nodes(principal, node, active_only=active_only)

    @router.post(f"/{segment}", response_model=out, status_code=status.HTTP_201_CREATED, name=f"create_{segment}")
    def create_node(
        payload: NodeIn,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> Any:
        return service.create_node(principal, node, **payload.model_dump())

    @router.get(f"/{segment}/{{node_id}}", response_model=out, name=f"get_{segment}")
    def get_node(
        node_id: int,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> Any:
        return service.get_node(principal, node, node_id)

    @router.patch(f"/{segment}/{{node_id}}", response_model=out, name=f"update_{segment}")
    def update_node(
        node_id: int,
        payload: NodeUpdateIn,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> Any:
        return service.update_node(principal, node, node_id, name=payload.name, description=payload.description)

    @router.put(f"/{segment}/{{node_id}}/active", response_model=out, name=f"set_{segment}_active")
    def set_active(
        node_id: int,
        payload: ActiveIn,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> Any:
        return service.set_active(principal, node, node_id, payload.is_active)

    @router.delete(f"/{segment}/{{node_id}}", status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{segment}")
    def delete_node(
        node_id: int,
        principal: Principal = Depends(get_current_principal),
        service: IdentityGraphService = Depends(get_rbac_service),
    ) -> Response:
        service.delete_node(principal, node, node_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


# Fixed paths first so "/actions/by-category" is not captured by "/actions/{node_id}".
@router.get("/actions/by-category", response_model=dict[str, list[ActionOut]])
def actions_by_category(
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, list[Any]]:
    return service.actions_by_category(principal)


@router.get("/statistics")
def statistics(
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, Any]:
    return service.statistics(principal)


for _segment, _node in _NODES.items():
    _add_node_routes(_segment, _node)


# ---- Links ---------------------------------------------------------------------------


@router.post("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def assign_role(
    user_id: int,
    role_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.assign_role(principal, user_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def unassign_role(
    user_id: int,
    role_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.unassign_role(principal, user_id, role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/users/{user_id}/roles")
def replace_user_roles(
    user_id: int,
    payload: IdsIn,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, list[int]]:
    return {"role_ids": service.replace_user_roles(principal, user_id, payload.ids)}


@router.post("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def assign_permission(
    role_id: int,
    permission_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.assign_permission(principal, role_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/roles/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def unassign_permission(
    role_id: int,
    permission_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.unassign_permission(principal, role_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/roles/{role_id}/permissions")
def replace_role_permissions(
    role_id: int,
    payload: IdsIn,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, list[int]]:
    return {"permission_ids": service.replace_role_permissions(principal, role_id, payload.ids)}


@router.post("/permissions/{permission_id}/actions/{action_id}", status_code=status.HTTP_204_NO_CONTENT)
def assign_action(
    permission_id: int,
    action_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.assign_action(principal, permission_id, action_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/permissions/{permission_id}/actions/{action_id}", status_code=status.HTTP_204_NO_CONTENT)
def unassign_action(
    permission_id: int,
    action_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> Response:
    service.unassign_action(principal, permission_id, action_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/permissions/{permission_id}/actions")
def replace_permission_actions(
    permission_id: int,
    payload: IdsIn,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, list[int]]:
    return {"action_ids": service.replace_permission_actions(principal, permission_id, payload.ids)}


# ---- Queries -------------------------------------------------------------------------


@router.get("/users/{user_id}/actions")
def user_actions(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> dict[str, list[str]]:
    return {"actions": sorted(service.user_actions(principal, user_id))}


@router.get("/users/{user_id}/check/{action_code}", response_model=AccessCheckOut)
def check_user_action(
    user_id: int,
    action_code: str,
    principal: Principal = Depends(get_current_principal),
    service: IdentityGraphService = Depends(get_rbac_service),
) -> AccessCheckOut:
    allowed = service.check_user_action(principal, user_id, action_code)
    return AccessCheckOut(user_id=user_id, action_code=action_code, allowed=allowed)
