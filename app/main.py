from fastapi import FastAPI

from app.routers import crop_plan

app = FastAPI(title="Crop Plan Engine")
app.include_router(crop_plan.router)


@app.get("/health")
def health():
    return {"status": "healthy"}
