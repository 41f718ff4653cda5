"""Template project workspace: one JSON document per template."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from .errors import TemplateValidationError
from .serializer import serialize
from .slides.templates import TemplateDocument, to_canonical_template

logger = logging.getLogger("TemplateStudio.core.workspace")


class Workspace(BaseModel):
    """Manages a template project directory."""
    project_name: str
    root_path: Path

    model_config = {"arbitrary_types_allowed": True}

    @property
    def templates_dir(self) -> Path:
        return self.root_path / "templates"

    @property
    def manifest_path(self) -> Path:
        return self.root_path / "project.json"

    def template_path(self, template_id: str) -> Path:
        return self.templates_dir / f"{template_id}.json"

    def initialize(self) -> "Workspace":
        """Create the project directory structure."""
        self.templates_dir.mkdir(parents=True, exist_ok=True)
        self.save_manifest()
        return self

    def save_manifest(self):
        """Save the project manifest to disk."""
        self.root_path.mkdir(parents=True, exist_ok=True)
        data = {
            "project_name": self.project_name,
            "templates": sorted(p.stem for p in self.templates_dir.glob("*.json")),
        }
        self.manifest_path.write_text(json.dumps(data, indent=2))

    @classmethod
    def load(cls, project_path: Path) -> "Workspace":
        """Load a workspace from an existing project directory."""
        manifest_path = project_path / "project.json"
        if not manifest_path.exists():
            raise FileNotFoundError(f"No project.json found in {project_path}")

        data = json.loads(manifest_path.read_text())
        return cls(project_name=data["project_name"], root_path=project_path)

    def _write(self, document: TemplateDocument):
        self.templates_dir.mkdir(parents=True, exist_ok=True)
        self.template_path(document.id).write_text(
            document.model_dump_json(by_alias=True, indent=2)
        )

    def save_template(self, document: TemplateDocument) -> TemplateDocument:
        """Persist a template, returning the stored document.

        Assigns an id on first save, regenerates ``yaml`` from the structured
        fields and stamps the timestamps.
        """
        is_new = document.id is None
        now = datetime.now(timezone.utc)
        document = document.model_copy(update={
            "id": document.id or uuid.uuid4().hex[:12],
            "yaml": serialize(document),
            "created_at": document.created_at or now,
            "updated_at": now,
        })
        self._write(document)
        if document.is_default:
            self._clear_defaults(keep=document.id)
        if is_new:
            self.save_manifest()
        logger.info(f"Saved template '{document.name}' ({document.id})")
        return document

    def load_template(self, template_id: str) -> TemplateDocument:
        """Load a stored template, upgrading legacy single-slide documents."""
        path = self.template_path(template_id)
        if not path.exists():
            raise FileNotFoundError(f"No template {template_id} in {self.templates_dir}")

        raw = json.loads(path.read_text())
        try:
            document = to_canonical_template(raw, TemplateDocument)
        except ValidationError as e:
            raise TemplateValidationError.from_validation_error(e) from e
        if document.id != template_id:
            document = document.model_copy(update={"id": template_id})
        return document

    def list_templates(self) -> list[dict]:
        summaries = []
        for path in sorted(self.templates_dir.glob("*.json")):
            t = self.load_template(path.stem)
            summaries.append({
                "id": t.id,
                "name": t.name,
                "description": t.description,
                "aspect_ratio": t.aspect_ratio,
                "slide_count": len(t.slides),
                "is_default": t.is_default,
                "updated_at": t.updated_at,
            })
        return sorted(summaries, key=lambda s: s["name"].lower())

    def delete_template(self, template_id: str) -> bool:
        path = self.template_path(template_id)
        if not path.exists():
            return False
        path.unlink()
        self.save_manifest()
        logger.info(f"Deleted template {template_id}")
        return True

    def get_default(self) -> Optional[TemplateDocument]:
        for path in sorted(self.templates_dir.glob("*.json")):
            document = self.load_template(path.stem)
            if document.is_default:
                return document
        return None

    def set_default(self, template_id: str) -> TemplateDocument:
        """Make one template the default; every other template loses the flag."""
        document = self.load_template(template_id)
        if not document.is_default:
            document = document.model_copy(update={"is_default": True})
            self._write(document)
        self._clear_defaults(keep=template_id)
        return document

    def _clear_defaults(self, keep: str):
        for path in self.templates_dir.glob("*.json"):
            if path.stem == keep:
                continue
            other = self.load_template(path.stem)
            if other.is_default:
                self._write(other.model_copy(update={"is_default": False}))
