# Basic usage example

import asyncio
from cloud_volumes import (
    RightScaleClient,
    VolumeConfig,
    VolumeLifecycleController,
    VolumeSpec,
    VolumeState,
)

async def main():
    # Load config from RS_SERVER / RS_API_TOKEN and CLOUD_VOLUMES_* variables
    config = VolumeConfig.from_env()
    spec = VolumeSpec(name="demo-data", size=10, max_snapshots=2, timeout_minutes=15)
    state = VolumeState()

    async with RightScaleClient.from_config(config) as client:
        controller = VolumeLifecycleController(client, config=config)

        try:
            # Create and attach the volume
            for action in ("create", "attach"):
                result = await controller.run(action, spec, state)
                state = result.state
                print(f"✓ {result.message}")

            print(f"  Volume ID: {state.volume_id}")
            print(f"  Device: {state.device}")

            # Take a snapshot, then keep only the newest two
            result = await controller.run("snapshot", spec, state)
            print(f"✓ {result.message}")
            result = await controller.run("cleanup", spec, state)
            print(f"✓ {result.message}")

            # Detach and delete
            for action in ("detach", "delete"):
                result = await controller.run(action, spec, state)
                state = result.state or VolumeState()
                print(f"✓ {result.message}")

        except Exception as e:
            print(f"\n❗ Error: {e}")

if __name__ == "__main__":
    asyncio.run(main())
