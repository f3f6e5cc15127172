"""FastAPI application exposing projects and polled job status."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..errors import InvalidTransition, JobConflictError, StacktutorError
from ..models import AnalysisJob, JobStatus, Snapshot, SnapshotFile
from ..orchestrator import Orchestrator
from ..snapshot import classify_file


class FileEntry(BaseModel):
    path: str
    declared_type: Optional[str] = None
    content: Optional[str] = None


class CreateProjectRequest(BaseModel):
    name: str
    files: List[FileEntry] = Field(default_factory=list)


class UploadFilesRequest(BaseModel):
    files: List[FileEntry]


class CurriculumRequest(BaseModel):
    difficulty: Optional[str] = None


class ForceFailRequest(BaseModel):
    message: str = "Marked failed by operator"


class TechnologyResponse(BaseModel):
    name: str
    category: str
    importance: str
    confidence: float
    version: Optional[str] = None
    description: Optional[str] = None
    detected_from: List[str] = Field(default_factory=list)


class ProjectResponse(BaseModel):
    id: str
    name: str
    status: str
    tech_summary: Optional[Dict[str, Any]] = None
    technologies: List[TechnologyResponse] = Field(default_factory=list)


class JobResponse(BaseModel):
    id: str
    project_id: str
    job_type: str
    status: str
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    backend_name: Optional[str] = None
    model_name: Optional[str] = None
    created_at: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class SectionResponse(BaseModel):
    type: str
    title: str
    body: str
    code: Optional[str] = None
    quiz_options: Optional[List[str]] = None
    quiz_answer: Optional[int] = None


class ModuleResponse(BaseModel):
    order: int
    title: str
    description: str
    module_type: str
    tech_name: str
    content_status: str
    match_tier: Optional[str] = None
    estimated_minutes: Optional[int] = None
    sections: List[SectionResponse] = Field(default_factory=list)


class LearningPathResponse(BaseModel):
    id: str
    title: str
    description: str
    difficulty: str
    estimated_hours: Optional[float] = None
    modules: List[ModuleResponse]


class HealthResponse(BaseModel):
    status: str
    version: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _snapshot(name: str, files: List[FileEntry]) -> Snapshot:
    return Snapshot(
        project_name=name,
        files=tuple(
            SnapshotFile(
                path=entry.path,
                declared_type=entry.declared_type or classify_file(entry.path),
                content=entry.content,
            )
            for entry in files
        ),
    )


def _job_response(job: AnalysisJob) -> JobResponse:
    return JobResponse(
        id=job.id,
        project_id=job.project_id,
        job_type=job.job_type,
        status=JobStatus(job.status).value,
        error_message=job.error_message,
        error_kind=job.error_kind,
        input_tokens=job.input_tokens,
        output_tokens=job.output_tokens,
        backend_name=job.backend_name,
        model_name=job.model_name,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application around one long-lived orchestrator."""

    orchestrator_instance = orchestrator_factory()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        orchestrator_instance.shutdown()

    app = FastAPI(title="stacktutor", version=__version__, lifespan=lifespan)
    app.state.orchestrator = orchestrator_instance

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_instance

    def _project_or_404(orchestrator: Orchestrator, project_id: str):
        try:
            return orchestrator.get_project(project_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown project: {project_id}") from exc

    def _job_or_404(orchestrator: Orchestrator, job_id: str) -> AnalysisJob:
        try:
            return orchestrator.get_job(job_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown job: {job_id}") from exc

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/projects", response_model=ProjectResponse, status_code=201)
    async def create_project(
        payload: CreateProjectRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> ProjectResponse:
        snapshot = _snapshot(payload.name, payload.files) if payload.files else None
        project = orchestrator.create_project(payload.name, snapshot)
        return ProjectResponse(id=project.id, name=project.name, status=project.status.value)

    @app.put("/projects/{project_id}/files", status_code=204)
    async def upload_files(
        project_id: str,
        payload: UploadFilesRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> None:
        project = _project_or_404(orchestrator, project_id)
        orchestrator.upload_snapshot(project_id, _snapshot(project.name, payload.files))

    @app.get("/projects/{project_id}", response_model=ProjectResponse)
    async def get_project(
        project_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> ProjectResponse:
        project = _project_or_404(orchestrator, project_id)
        technologies = sorted(
            orchestrator.store.list_technologies(project_id),
            key=lambda record: -record.confidence,
        )
        return ProjectResponse(
            id=project.id,
            name=project.name,
            status=project.status.value,
            tech_summary=project.tech_summary,
            technologies=[
                TechnologyResponse(
                    name=record.name,
                    category=record.category,
                    importance=record.importance,
                    confidence=record.confidence,
                    version=record.version,
                    description=record.description,
                    detected_from=list(record.detected_from),
                )
                for record in technologies
            ],
        )

    @app.post("/projects/{project_id}/analyze", response_model=JobResponse, status_code=202)
    async def analyze_project(
        project_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> JobResponse:
        _project_or_404(orchestrator, project_id)
        return _job_response(orchestrator.start_analysis(project_id))

    @app.post("/projects/{project_id}/curriculum", response_model=JobResponse, status_code=202)
    async def generate_curriculum(
        project_id: str,
        payload: Optional[CurriculumRequest] = None,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> JobResponse:
        _project_or_404(orchestrator, project_id)
        difficulty = payload.difficulty if payload else None
        return _job_response(orchestrator.start_curriculum(project_id, difficulty=difficulty))

    @app.get("/projects/{project_id}/learning-path", response_model=LearningPathResponse)
    async def latest_learning_path(
        project_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> LearningPathResponse:
        _project_or_404(orchestrator, project_id)
        path = orchestrator.store.latest_learning_path(project_id)
        if path is None:
            raise HTTPException(status_code=404, detail="No learning path generated yet")
        return LearningPathResponse(
            id=path.id,
            title=path.title,
            description=path.description,
            difficulty=path.difficulty,
            estimated_hours=path.estimated_hours,
            modules=[
                ModuleResponse(
                    order=module.order,
                    title=module.title,
                    description=module.description,
                    module_type=module.module_type,
                    tech_name=module.tech_name,
                    content_status=module.content_status,
                    match_tier=module.match_tier,
                    estimated_minutes=module.estimated_minutes,
                    sections=[
                        SectionResponse(
                            type=section.type,
                            title=section.title,
                            body=section.body,
                            code=section.code,
                            quiz_options=section.quiz_options,
                            quiz_answer=section.quiz_answer,
                        )
                        for section in module.sections
                    ],
                )
                for module in path.modules
            ],
        )

    @app.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(
        job_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> JobResponse:
        return _job_response(_job_or_404(orchestrator, job_id))

    @app.post("/jobs/{job_id}/fail", response_model=JobResponse)
    async def force_fail_job(
        job_id: str,
        payload: ForceFailRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> JobResponse:
        _job_or_404(orchestrator, job_id)
        return _job_response(orchestrator.force_fail(job_id, payload.message))

    @app.exception_handler(JobConflictError)
    async def job_conflict_handler(_: Any, exc: JobConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "active_job_id": exc.active_job_id},
        )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(_: Any, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StacktutorError)
    async def stacktutor_error_handler(_: Any, exc: StacktutorError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc), "error_kind": exc.kind})

    return app


def run_service(
    host: str = "127.0.0.1",
    port: int = 8000,
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> None:  # pragma: no cover - integration path
    app = create_app(orchestrator_factory)
    uvicorn.run(app, host=host, port=port)
