"""
API Endpoints for Workflow Configurations

Saved prompt overrides for the agent nodes of the mining, batch and
deep dive workflows. Each user sees only their own configs.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from src.auth.dependencies import get_current_user
from src.auth.models import User
from src.database.models import WorkflowConfig
from src.database.session import get_db
from src.models.keyword import now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflow-configs", tags=["Workflow Configs"])

VALID_WORKFLOW_IDS = ("mining", "batch", "deepDive")


class CreateConfigRequest(BaseModel):
    """Fields are validated by hand so errors match the dashboard's messages."""
    workflowId: Optional[str] = None
    name: Optional[str] = None
    nodes: Optional[Any] = None


class UpdateConfigRequest(BaseModel):
    name: Optional[str] = None
    nodes: Optional[Any] = None


def _error(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


def _not_found(config_id: str) -> JSONResponse:
    return _error(404, "Config not found", f'Workflow configuration with ID "{config_id}" not found')


def prepare_nodes(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Fill node defaults; prompt and defaultPrompt fall back to each other."""
    timestamp = now_ms()
    return [
        {
            **node,
            "id": node.get("id") or f"node-{timestamp}",
            "type": node.get("type") or "agent",
            "name": node.get("name") or "Unnamed Node",
            "prompt": node.get("prompt") or node.get("defaultPrompt") or "",
            "defaultPrompt": node.get("defaultPrompt") or node.get("prompt") or "",
        }
        for node in nodes
        if isinstance(node, dict)
    ]


def _get_owned_config(db: Session, config_id: str, user: User) -> Optional[WorkflowConfig]:
    try:
        config_uuid = UUID(config_id)
    except ValueError:
        return None
    return (
        db.query(WorkflowConfig)
        .filter(WorkflowConfig.id == config_uuid, WorkflowConfig.user_id == user.id)
        .first()
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", status_code=201)
async def create_config(
    request: CreateConfigRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a workflow configuration."""
    if not request.workflowId or not request.name or not request.nodes:
        return _error(
            400,
            "Missing required fields",
            "workflowId, name, and nodes are required",
            requiredFields=["workflowId", "name", "nodes"],
        )

    if request.workflowId not in VALID_WORKFLOW_IDS:
        return _error(
            400,
            "Invalid workflowId",
            f"workflowId must be one of: {', '.join(VALID_WORKFLOW_IDS)}",
            validWorkflowIds=list(VALID_WORKFLOW_IDS),
        )

    if not isinstance(request.nodes, list) or not request.nodes:
        return _error(400, "Invalid nodes", "nodes must be a non-empty array")

    config = WorkflowConfig(
        user_id=current_user.id,
        workflow_id=request.workflowId,
        name=request.name,
        nodes=prepare_nodes(request.nodes),
    )
    db.add(config)
    db.commit()
    db.refresh(config)

    logger.info(f"Created workflow config {config.id} ({config.workflow_id}) for user {current_user.id}")
    return {"success": True, "data": config.to_dict()}


@router.get("")
async def list_configs(
    workflowId: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the user's configurations, newest first."""
    query = db.query(WorkflowConfig).filter(WorkflowConfig.user_id == current_user.id)
    if workflowId:
        query = query.filter(WorkflowConfig.workflow_id == workflowId)

    configs = [c.to_dict() for c in query.order_by(WorkflowConfig.updated_at.desc()).all()]
    return {"success": True, "data": configs, "count": len(configs)}


@router.get("/{config_id}")
async def get_config(
    config_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    config = _get_owned_config(db, config_id, current_user)
    if config is None:
        return _not_found(config_id)
    return {"success": True, "data": config.to_dict()}


@router.put("/{config_id}")
async def update_config(
    config_id: str,
    request: UpdateConfigRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a configuration's name and/or nodes."""
    updates: Dict[str, Any] = {}
    if request.name is not None:
        updates["name"] = request.name
    if request.nodes is not None:
        if not isinstance(request.nodes, list):
            return _error(400, "Invalid nodes", "nodes must be an array")
        updates["nodes"] = prepare_nodes(request.nodes)

    if not updates:
        return _error(400, "No updates provided", "Please provide name or nodes to update")

    config = _get_owned_config(db, config_id, current_user)
    if config is None:
        return _not_found(config_id)

    for field, value in updates.items():
        setattr(config, field, value)
    db.commit()
    db.refresh(config)

    return {"success": True, "data": config.to_dict()}


@router.delete("/{config_id}")
async def delete_config(
    config_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    config = _get_owned_config(db, config_id, current_user)
    if config is None:
        return _not_found(config_id)

    db.delete(config)
    db.commit()
    logger.info(f"Deleted workflow config {config_id}")
    return {"success": True, "message": "Configuration deleted successfully"}
