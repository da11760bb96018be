# run.py

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "cdnstats.main:app",
        host="0.0.0.0",
        port=4001,
        reload=False,
        workers=1,  # Single worker - one scheduler per process
    )
