"""Command line front-end for the SmartLife dashboard engine.

Configuration is read from ``SMARTLIFE_*`` environment variables, for
example ``SMARTLIFE_API_URL`` and ``SMARTLIFE_PASSWORD``.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from .api import AuthenticationError, DashboardApiClient
from .config import ConfigurationError, DashboardConfig, config_from_env
from .const import DOMAIN
from .controller import DeviceController
from .dashboard import Dashboard, DeviceView
from .models import ColourData, DeviceCategory, WorkMode
from .perceptual import hsv_to_hsl, percent
from .settings import DeviceSettingsStore, JsonFileSettingsRepository

_LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for every sub-command."""

    parser = argparse.ArgumentParser(
        prog=DOMAIN, description="Control SmartLife devices from the terminal"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--settings-path", type=Path, help="Override the overlay settings file"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Show devices grouped by category")
    list_cmd.add_argument("--all", action="store_true", help="Include hidden devices")

    watch = sub.add_parser("watch", help="Poll and print devices periodically")
    watch.add_argument("--count", type=int, default=0, help="Stop after N polls")

    toggle = sub.add_parser("toggle", help="Toggle power")
    toggle.add_argument("device_id")

    brightness = sub.add_parser("brightness", help="Set brightness (0-1000)")
    brightness.add_argument("device_id")
    brightness.add_argument("value", type=int)

    temp = sub.add_parser("temp", help="Set colour temperature (0-1000)")
    temp.add_argument("device_id")
    temp.add_argument("value", type=int)

    colour = sub.add_parser("colour", help="Set an HSV colour")
    colour.add_argument("device_id")
    colour.add_argument("hue", type=int)
    colour.add_argument("--saturation", type=int, default=1000)
    colour.add_argument("--value", type=int, default=1000)

    mode = sub.add_parser("mode", help="Switch work mode")
    mode.add_argument("device_id")
    mode.add_argument("mode", choices=[WorkMode.WHITE.value, WorkMode.COLOUR.value])

    hide = sub.add_parser("hide", help="Toggle the hidden flag")
    hide.add_argument("device_id")

    rename = sub.add_parser("rename", help="Set a custom display name")
    rename.add_argument("device_id")
    rename.add_argument("name")
    return parser


def format_view(view: DeviceView) -> str:
    """Render one device as a single line."""

    state = view.state
    flags = []
    if not view.online:
        flags.append("offline")
    if view.hidden:
        flags.append("hidden")
    parts = [f"{view.id}  {view.name}", "on" if state.power else "off"]
    if view.category is DeviceCategory.LIGHT:
        if state.work_mode is WorkMode.COLOUR:
            colour = state.colour
            parts.append(f"colour {hsv_to_hsl(colour.h, colour.s, colour.v)}")
        else:
            parts.append(f"white {percent(state.brightness)}% temp {state.color_temp}")
    if flags:
        parts.append(f"[{', '.join(flags)}]")
    return "  ".join(parts)


def _print_groups(dashboard: Dashboard, include_hidden: bool) -> None:
    groups = dashboard.grouped_views(include_hidden=include_hidden)
    for name, views in groups.items():
        if not views:
            continue
        print(f"{name}:")
        for view in views:
            print(f"  {format_view(view)}")


async def _async_settle(dashboard: Dashboard) -> None:
    await asyncio.sleep(dashboard.dispatcher.delay + 0.05)
    await dashboard.async_wait_idle()


async def _async_gesture(dashboard: Dashboard, args: argparse.Namespace) -> int:
    try:
        controller: DeviceController = dashboard.controller(args.device_id)
    except KeyError:
        print(f"Unknown device: {args.device_id}", file=sys.stderr)
        return 2
    if args.command == "toggle":
        accepted = await controller.async_toggle_power()
    elif args.command == "mode":
        accepted = await controller.async_set_work_mode(args.mode)
    elif args.command == "brightness":
        accepted = controller.set_brightness(args.value)
    elif args.command == "temp":
        accepted = controller.set_color_temp(args.value)
    else:
        accepted = controller.set_colour(
            ColourData(h=args.hue % 360, s=args.saturation, v=args.value)
        )
    await _async_settle(dashboard)
    if controller.notice:
        print(f"Command failed: {controller.notice}", file=sys.stderr)
        return 1
    if not accepted:
        print("Nothing sent", file=sys.stderr)
    return 0


async def async_run(args: argparse.Namespace, config: DashboardConfig) -> int:
    """Execute one parsed command against the configured dashboard."""

    settings = DeviceSettingsStore(JsonFileSettingsRepository(config.settings_path))
    settings.load()
    if args.command == "hide":
        hidden = settings.toggle_hidden(args.device_id)
        print(f"{args.device_id} {'hidden' if hidden else 'visible'}")
        return 0
    if args.command == "rename":
        if not settings.set_custom_name(args.device_id, args.name):
            print("Name must not be empty", file=sys.stderr)
            return 2
        return 0

    _LOGGER.debug("Running %s against %s", args.command, config.api_url)
    api = DashboardApiClient(config)
    dashboard = Dashboard(api, settings, config)
    try:
        await api.async_login()
        if args.command == "watch":
            await dashboard.async_start()
            polls = 0
            while not args.count or polls < args.count:
                _print_groups(dashboard, include_hidden=False)
                print()
                await asyncio.sleep(config.poll_interval)
                polls += 1
            return 0
        if not await dashboard.async_refresh():
            print(dashboard.error, file=sys.stderr)
            return 1
        if args.command == "list":
            _print_groups(dashboard, include_hidden=args.all)
            return 0
        return await _async_gesture(dashboard, args)
    except AuthenticationError as err:
        print(f"Authentication failed: {err}", file=sys.stderr)
        return 1
    finally:
        dashboard.close()
        await api.async_close()


def main(
    argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None
) -> int:
    """Parse ``argv`` and run the requested command."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = config_from_env(os.environ if environ is None else environ)
    except ConfigurationError as err:
        print(f"Invalid configuration: {err}", file=sys.stderr)
        return 2
    if args.settings_path is not None:
        config = dataclasses.replace(config, settings_path=args.settings_path)
    return asyncio.run(async_run(args, config))


if __name__ == "__main__":  # pragma: no cover - CLI
    raise SystemExit(main())
