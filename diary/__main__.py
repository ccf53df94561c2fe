"""Run the diary web server: ``python -m diary``."""

import os

import uvicorn


def main():
    uvicorn.run(
        "diary.web.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
