# run_all.py
import asyncio
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

from orderbot.core.config import settings


async def run_process(name: str, cmd: list):
    """
    Runs a subprocess and streams logs to console.
    """
    print(f"▶ Starting {name}: {' '.join(cmd)}")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=ROOT,
    )

    async def _pipe_reader(stream, prefix):
        while True:
            line = await stream.readline()
            if not line:
                break
            print(f"[{prefix}] {line.decode().rstrip()}")

    await asyncio.gather(
        _pipe_reader(process.stdout, name),
        _pipe_reader(process.stderr, name),
    )
    return await process.wait()


async def main():
    tasks = []

    # Redis only matters when sessions live there
    if settings.SESSION_BACKEND == "redis":
        tasks.append(run_process("REDIS", ["redis-server"]))

    uvicorn_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "orderbot.main:app",
        "--host", os.getenv("HOST", "0.0.0.0"),
        "--port", os.getenv("PORT", "8000"),
    ]
    if settings.ENVIRONMENT == "dev":
        uvicorn_cmd.append("--reload")
    tasks.append(run_process("APP", uvicorn_cmd))

    await asyncio.gather(*tasks)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("Shutting down...")
