import asyncio
import sys
import docker
from docker.errors import DockerException
from codeexec.core.languages import LANGUAGES


def required_images() -> list[str]:
    return sorted({p.image for p in LANGUAGES.values()})


async def main(client_factory=docker.from_env) -> int:
    loop = asyncio.get_running_loop()
    try:
        client = await loop.run_in_executor(None, client_factory)
    except DockerException as e:
        print(f"docker engine unavailable: {e}")
        return 1
    failed = 0
    for image in required_images():
        try:
            await loop.run_in_executor(None, client.images.pull, image)
            print(f"pulled {image}")
        except DockerException as e:
            failed += 1
            print(f"failed {image}: {e}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
