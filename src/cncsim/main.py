"""cncsim — application entry point (NiceGUI composition root).

Wires together: Config → EventBus → MockHardwareFactory → PersistenceStore
→ DeviceSimulator → DevPanel.  NiceGUI owns the event loop; the simulator
is created in ``app.on_startup`` because its scheduler needs that loop.
"""

from __future__ import annotations

import logging as _logging

from nicegui import app, ui

from cncsim.config.config_manager import load_config
from cncsim.config.persistence import PersistenceStore
from cncsim.core.event_bus import EventBus
from cncsim.core.scheduler import AsyncioScheduler
from cncsim.core.simulator import DeviceSimulator
from cncsim.hardware.mock.mock_factory import MockHardwareFactory
from cncsim.log_config.logger import setup_logging
from cncsim.ui.dev_panel import DevPanel

_log = _logging.getLogger(__name__)


def main() -> None:
    """Synchronous entry point — bootstraps and starts NiceGUI."""

    # 1. Load configuration, then configure logging from it
    config = load_config()
    setup_logging(config.system.log_level, config.system.log_dir)
    _log.info("Starting cncsim")

    # 2. Create event bus, mock hardware, persistence
    bus = EventBus(queue_size=config.system.event_bus_queue_size)
    factory = MockHardwareFactory(buzzer_enabled=config.system.buzzer_enabled)
    store = PersistenceStore(config.system.state_file)

    simulator: DeviceSimulator | None = None

    # 3. Page: one dev panel per connected browser
    @ui.page("/")
    def _index() -> None:
        ui.dark_mode().enable()
        if simulator is None:
            ui.label("Simulator starting …")
            return
        panel = DevPanel(simulator=simulator, factory=factory, event_bus=bus)
        panel.build()
        ui.context.client.on_disconnect(panel.teardown)

    # 4. Wire lifecycle hooks
    async def on_startup() -> None:
        nonlocal simulator
        _log.info("NiceGUI startup — starting simulator")
        await bus.start()
        simulator = DeviceSimulator(
            config=config,
            scheduler=AsyncioScheduler(),
            persistence=store,
            hardware=factory,
            event_bus=bus,
        )
        simulator.start()
        _log.info("cncsim running on http://localhost:%d", config.system.webui_port)

    async def on_shutdown() -> None:
        _log.info("NiceGUI shutdown — stopping simulator")
        if simulator is not None:
            simulator.close()
        await bus.stop()
        factory.cleanup()
        _log.info("cncsim stopped")

    app.on_startup(on_startup)
    app.on_shutdown(on_shutdown)

    # 5. Launch NiceGUI (blocks forever)
    ui.run(
        port=config.system.webui_port,
        title="cncsim",
        reload=False,
        show=False,
    )


if __name__ == "__main__":
    main()
