import logging

from fastapi import FastAPI

from deployment_engine.api.routes.deployments import router as deployments_router

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(title="Deployment Sequencer API")

@app.get("/health")
def health():
    return {"status": "ok"}

app.include_router(deployments_router)
