"""
3D print cost tracker — pricing engine, job store and persistence.

Pure Python core (materials, pricing_engine, job_store, transfer,
persistence, workspace) with a FastAPI app on top (main, routers).
"""
