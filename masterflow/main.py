import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from masterflow.config import ServiceConfig, configure_logging
from masterflow.dsp_engine import analysis
from masterflow.dsp_engine.buffer import decode_audio
from masterflow.dsp_engine.pipeline import MasteringPipeline
from masterflow.dsp_engine.settings import ProcessingSettings
from masterflow.engine import MasteringSession
from masterflow.errors import ErrorLog, MasteringError
from masterflow.inference import build_inference
from masterflow.jobs import JobQueue
from masterflow.models import (
    AnalysisResponse,
    ErrorEntry,
    InferenceStatus,
    JobCreated,
    JobModel,
    ProcessResponse,
    SettingsForm,
)
from masterflow.storage import ResultStore, mastered_name

logger = logging.getLogger("masterflow")


def settings_form(
    mode: str = Form("music"),
    target_lufs: float = Form(-14.0, alias="targetLufs"),
    dry_wet: float = Form(100.0, alias="dryWet"),
    noise_reduction: float = Form(50.0, alias="noiseReduction"),
    beat_quantization: Optional[float] = Form(None, alias="beatQuantization"),
    swing_preservation: bool = Form(True, alias="swingPreservation"),
    preserve_tempo: bool = Form(True, alias="preserveTempo"),
    preserve_tone: bool = Form(True, alias="preserveTone"),
    beat_correction_mode: str = Form("gentle", alias="beatCorrectionMode"),
) -> ProcessingSettings:
    try:
        form = SettingsForm(
            mode=mode,
            targetLufs=target_lufs,
            dryWet=dry_wet,
            noiseReduction=noise_reduction,
            beatQuantization=beat_quantization,
            swingPreservation=swing_preservation,
            preserveTempo=preserve_tempo,
            preserveTone=preserve_tone,
            beatCorrectionMode=beat_correction_mode,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"error": "INVALID_SETTINGS", "message": str(exc)},
        ) from exc
    return form.to_settings()


def _error_detail(exc: MasteringError, **extra: Any) -> Dict[str, Any]:
    detail: Dict[str, Any] = {"error": exc.code, "message": str(exc)}
    detail.update({k: v for k, v in extra.items() if v is not None})
    return detail


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    config = config or ServiceConfig.from_env()
    configure_logging(config.log_level)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        inference = build_inference(config.inference)
        ready = await asyncio.to_thread(inference.initialize)
        logger.info("inference backend %s ready=%s", inference.name, ready)

        error_log = ErrorLog(max_entries=config.max_error_entries)
        pipeline = MasteringPipeline(enhancer=inference)
        store = ResultStore(config.output_dir, config.s3_bucket, config.s3_region, config.s3_prefix)
        jobs = JobQueue(pipeline, store, error_log, max_completed=config.max_completed_jobs)

        app.state.config = config
        app.state.inference = inference
        app.state.error_log = error_log
        app.state.pipeline = pipeline
        app.state.store = store
        app.state.jobs = jobs

        worker = asyncio.create_task(jobs.run_worker(config.worker_poll_interval))
        try:
            yield
        finally:
            jobs.stop()
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    app = FastAPI(title="masterflow", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(MasteringError)
    async def mastering_error_handler(request: Request, exc: MasteringError):
        request.app.state.error_log.record(exc, context={"path": request.url.path})
        if exc.status_code >= 500:
            logger.error("[masterflow] %s failed: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": _error_detail(exc)})

    @app.get("/health")
    async def health():
        """Static payload for uptime checks."""

        return {"status": "ok"}

    @app.post("/analyze", response_model=AnalysisResponse)
    async def analyze(file: UploadFile = File(...)):
        """Loudness, peak, spectral stats and a suggested content mode."""

        buffer = decode_audio(await file.read())
        return await asyncio.to_thread(analysis.describe, buffer)

    async def _render(request: Request, file: UploadFile, settings: ProcessingSettings) -> MasteringSession:
        session = MasteringSession(request.app.state.pipeline)
        try:
            session.load_bytes(await file.read())
        finally:
            await file.close()
        await session.process(settings)
        return session

    @app.post("/process", response_model=ProcessResponse)
    async def process(
        request: Request,
        file: UploadFile = File(...),
        settings: ProcessingSettings = Depends(settings_form),
    ):
        """Master the upload synchronously and store the WAV."""

        session = await _render(request, file, settings)
        name = mastered_name(file.filename or "audio")
        output = await asyncio.to_thread(request.app.state.store.save, name, session.export_wav())
        return {
            "status": "processed",
            "output_file": output,
            "file_name": name,
            "results": session.results.to_dict(),
            "stages": request.app.state.pipeline.describe(settings),
        }

    @app.post("/process/wav")
    async def process_wav(
        request: Request,
        file: UploadFile = File(...),
        settings: ProcessingSettings = Depends(settings_form),
    ):
        """Master the upload and return the WAV bytes directly."""

        session = await _render(request, file, settings)
        results = session.results.to_dict()
        headers = {
            "Content-Disposition": f'attachment; filename="{mastered_name(file.filename or "audio")}"',
            "X-Masterflow-Input-Lufs": str(results["inputLufs"]),
            "X-Masterflow-Output-Lufs": str(results["outputLufs"]),
            "X-Masterflow-Output-Peak": str(results["outputPeak"]),
            "X-Masterflow-Noise-Reduction": str(results["noiseReduction"]),
        }
        return Response(content=session.export_wav(), media_type="audio/wav", headers=headers)

    @app.post("/jobs", response_model=JobCreated, status_code=202)
    async def create_job(
        request: Request,
        file: UploadFile = File(...),
        settings: ProcessingSettings = Depends(settings_form),
    ):
        payload = await file.read()
        await file.close()
        job_id = request.app.state.jobs.enqueue(file.filename or "audio", len(payload), settings, payload)
        return {"job_id": job_id, "status": "pending"}

    @app.get("/jobs/queued", response_model=list[JobModel])
    async def queued_jobs(request: Request):
        return [job.to_dict() for job in request.app.state.jobs.list_queued()]

    @app.get("/jobs/completed", response_model=list[JobModel])
    async def completed_jobs(request: Request, limit: int = Query(default=20, ge=1, le=100)):
        return [job.to_dict() for job in request.app.state.jobs.list_completed(limit)]

    @app.get("/jobs/{job_id}", response_model=JobModel)
    async def get_job(request: Request, job_id: str):
        job = request.app.state.jobs.get_by_id(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail={"error": "JOB_NOT_FOUND", "job_id": job_id})
        return job.to_dict()

    @app.delete("/jobs/{job_id}")
    async def delete_job(request: Request, job_id: str):
        if not request.app.state.jobs.remove(job_id):
            raise HTTPException(status_code=404, detail={"error": "JOB_NOT_FOUND", "job_id": job_id})
        return {"status": "removed", "job_id": job_id}

    @app.get("/inference/status", response_model=InferenceStatus)
    async def inference_status(request: Request):
        return request.app.state.inference.status()

    @app.get("/errors", response_model=list[ErrorEntry])
    async def recent_errors(request: Request, limit: int = Query(default=10, ge=1, le=50)):
        return [entry.to_dict() for entry in request.app.state.error_log.recent(limit)]

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("masterflow.main:app", host="0.0.0.0", port=8000)
