"""CLI for the nightcalm night-terror protocol."""

import logging

import click

from nightcalm import config as defaults

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _config_options(f):
    """Shared protocol configuration options."""
    options = [
        click.option("--hr-z", default=defaults.HR_Z_THRESHOLD, show_default=True,
                     help="HR z-score spike threshold."),
        click.option("--hrv-drop", default=defaults.HRV_DROP_FRACTION, show_default=True,
                     help="Fractional HRV drop threshold."),
        click.option("--motion", default=defaults.MOTION_SPIKE_THRESHOLD, show_default=True,
                     help="Motion spike threshold."),
        click.option("--window", default=defaults.SLIDING_WINDOW.total_seconds() / 60,
                     show_default=True, help="Sliding window in minutes."),
        click.option("--cooldown", default=defaults.COOLDOWN.total_seconds() / 60,
                     show_default=True, help="Cooldown between cues in minutes."),
        click.option("--recovery", default=defaults.RECOVERY_WINDOW.total_seconds() / 60,
                     show_default=True, help="Stable time required for recovery in minutes."),
        click.option("--min-samples", default=defaults.MIN_BASELINE_SAMPLES, show_default=True,
                     help="Baseline samples required before detection."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _build_config(hr_z, hrv_drop, motion, window, cooldown, recovery, min_samples):
    from nightcalm.config import ProtocolConfig

    try:
        return ProtocolConfig.from_minutes(
            window_min=window,
            cooldown_min=cooldown,
            recovery_min=recovery,
            hr_z_threshold=hr_z,
            hrv_drop_fraction=hrv_drop,
            motion_spike_threshold=motion,
            min_baseline_samples=min_samples,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """nightcalm: night-terror distress detection and calming cues."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


@main.command()
@click.argument("file", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Append diagnostic records to this JSONL file.")
@click.option("--show-diagnostics", "-d", is_flag=True, help="Print every diagnostic record.")
@_config_options
def replay(file: str, output: str | None, show_diagnostics: bool, **settings) -> None:
    """Replay a recorded sample log through the protocol."""
    from nightcalm.replay import replay_file

    config = _build_config(**settings)
    replay_file(file, config=config, output_path=output, verbose=show_diagnostics)


@main.command("config")
@_config_options
def config_cmd(**settings) -> None:
    """Print the effective configuration as JSON."""
    click.echo(_build_config(**settings).to_json())


if __name__ == "__main__":
    main()
