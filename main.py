import argparse
import asyncio
import signal

from pumpbot.core.initialization import initialize_components, load_configuration
from pumpbot.exceptions import ConfigurationError
from pumpbot.utils.logger import logger_from_config


async def run_bot(env_path: str) -> None:
    """
    Entrypoint coroutine for the strategy bot.

    Loads the configuration, wires the runtime graph and starts one strategy
    engine for the configured instrument. Runs until SIGINT/SIGTERM, then
    stops every engine (closing open positions) and prints the final stats.
    """
    config = load_configuration(env_path)
    logger = logger_from_config(config)
    if not config["INSTRUMENT"]:
        raise ConfigurationError("INSTRUMENT is not set")

    components = initialize_components(config, overrides={"logger": logger})
    manager = components["manager"]

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    await manager.start_bot(config["STRATEGY"], config["INSTRUMENT"], config["STRATEGY_OPTIONS"])
    try:
        await stop.wait()
    finally:
        results = await manager.shutdown()
        for bot_id, stats in results.items():
            logger.info("Final stats %s: %s", bot_id, stats.to_dict())
        await components["notifier"].close()
        if components["persistence"] is not None:
            components["persistence"].close()


def main():
    parser = argparse.ArgumentParser(description="Run a pumpbot trading strategy")
    parser.add_argument("--env", default="config.env", help="path to the .env-style config file")
    args = parser.parse_args()
    try:
        asyncio.run(run_bot(args.env))
    except Exception as e:
        print(f"❌ Bot terminated due to error: {e}")


if __name__ == "__main__":
    main()
