from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import ValidationError

from buildledger.ledger.errors import NotFoundError
from buildledger.models.project import Project, ProjectStatus
from buildledger.services.client_service import ClientService
from buildledger.services.session_service import SessionService
from buildledger.settings import default_data_dir
from buildledger.storage.repo import JsonRepository

logger = logging.getLogger(__name__)

class ProjectService:
    def __init__(self, session: SessionService, clients: ClientService, data_dir: Optional[str | Path] = None):
        base = Path(data_dir) if data_dir else default_data_dir()
        self.repo = JsonRepository(base / "projects.json", entity_name="project", key="id")
        self.session = session
        self.clients = clients

    def list_projects(self, status: Optional[ProjectStatus] = None) -> List[Project]:
        user_id = self.session.get_current_user_id()
        out: List[Project] = []
        for d in self.repo.find(lambda r: r.get("user_id") == user_id):
            try:
                p = Project(**d)
            except ValidationError as e:
                logger.warning("Skipping invalid project %s: %s", d.get("id"), e)
                continue
            if status is None or p.status == status:
                out.append(p)
        return out

    def list_by_client(self, client_id: str) -> List[Project]:
        return [p for p in self.list_projects() if p.client_id == client_id]

    def get_by_id(self, project_id: str) -> Project:
        user_id = self.session.get_current_user_id()
        d = self.repo.get_by_id(project_id)
        if d is None or d.get("user_id") != user_id:
            raise NotFoundError("project", project_id)
        return Project(**d)

    def add_project(self, project: Project) -> Project:
        # the client must belong to the same user
        self.clients.get_by_id(project.client_id)
        project = project.model_copy(update={"user_id": self.session.get_current_user_id()})
        self.repo.add(project.model_dump(mode="json"))
        logger.info("Project %s created for client %s", project.id, project.client_id)
        return project

    def update_project(self, project: Project) -> Project:
        self.get_by_id(project.id)
        self.clients.get_by_id(project.client_id)
        project = project.model_copy(update={"user_id": self.session.get_current_user_id()})
        self.repo.update(project.model_dump(mode="json"))
        return project

    def set_status(self, project_id: str, status: ProjectStatus) -> Project:
        p = self.get_by_id(project_id)
        p = Project.model_validate({**p.model_dump(), "status": status})
        self.repo.update(p.model_dump(mode="json"))
        logger.info("Project %s is now %s", project_id, status)
        return p

    def delete_project(self, project_id: str) -> None:
        self.get_by_id(project_id)
        self.repo.delete(project_id)

    def count_in_progress(self) -> int:
        return sum(1 for p in self.list_projects() if p.status == "in_progress")
