import logging
import os

import uvicorn

# Define the host and port for the application
# Use environment variables if available, otherwise default to localhost:8000
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

if __name__ == "__main__":
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    print(f"Starting StudyFlow server at http://{HOST}:{PORT}")

    # "studyflow.main:app": Uvicorn will look for the 'app' instance in 'studyflow/main.py'.
    # reload=True restarts the server on code changes; turn it off in production.
    uvicorn.run("studyflow.main:app", host=HOST, port=PORT, reload=True, log_level=LOG_LEVEL.lower())
