import logging
import os
import shutil
import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from config import ScoringConfig
from errors import VideoReadError
from models import JobStatus, ScoreReport
from scorer import MotionScorer

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

engine = MotionScorer(ScoringConfig.from_env())

# The engine and its detector are not reentrant: one worker serializes all scoring.
executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scoring")

# In-memory job store
jobs: dict[str, dict] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    executor.shutdown(wait=True)
    engine.close()


app = FastAPI(title="Motion Scoring API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/score")
async def score(
    reference: UploadFile = File(...),
    recorded: UploadFile = File(...),
):
    job_id = str(uuid.uuid4())
    jobs[job_id] = {"status": "pending", "message": "Queued", "result": None}

    # Save uploads to temp files
    tmp_dir = tempfile.mkdtemp()
    ref_path = os.path.join(tmp_dir, f"ref_{os.path.basename(reference.filename or 'reference')}")
    rec_path = os.path.join(tmp_dir, f"rec_{os.path.basename(recorded.filename or 'recorded')}")

    with open(ref_path, "wb") as f:
        f.write(await reference.read())
    with open(rec_path, "wb") as f:
        f.write(await recorded.read())

    executor.submit(_process_job, job_id, tmp_dir, rec_path, ref_path)
    logger.info("Queued job %s", job_id)

    return {"job_id": job_id}


def _process_job(job_id: str, tmp_dir: str, rec_path: str, ref_path: str):
    try:
        jobs[job_id]["status"] = "processing"
        jobs[job_id]["message"] = "Scoring recording against reference..."

        report = engine.evaluate(rec_path, ref_path)

        jobs[job_id]["status"] = "complete"
        jobs[job_id]["message"] = "Done"
        jobs[job_id]["result"] = report
        logger.info("Job %s complete: %.1f (%s)", job_id, report.score, report.strategy.value)
    except VideoReadError as e:
        logger.warning("Job %s failed: %s", job_id, e)
        jobs[job_id]["status"] = "error"
        jobs[job_id]["message"] = f"{e}. Please check the upload and retry."
    except Exception as e:
        logger.exception("Job %s failed", job_id)
        jobs[job_id]["status"] = "error"
        jobs[job_id]["message"] = str(e)
    finally:
        # Clean up temp files
        shutil.rmtree(tmp_dir, ignore_errors=True)


@app.get("/api/status/{job_id}")
def get_status(job_id: str) -> JobStatus:
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    job = jobs[job_id]
    return JobStatus(job_id=job_id, status=job["status"], message=job["message"])


@app.get("/api/results/{job_id}")
def get_results(job_id: str) -> ScoreReport:
    if job_id not in jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    job = jobs[job_id]
    if job["status"] != "complete":
        raise HTTPException(status_code=400, detail=f"Job not complete: {job['status']}")
    return job["result"]
