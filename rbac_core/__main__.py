"""Run the RBAC service with `python -m rbac_core`."""

from rbac_core.main import app  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    import os

    import uvicorn

    uvicorn.run(app, host=os.environ.get("RBAC_HOST", "0.0.0.0"), port=int(os.environ.get("RBAC_PORT", "8000")))
