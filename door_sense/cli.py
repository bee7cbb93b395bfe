"""
Command-line interface for the door-sense engine
"""

import json
import logging
import sys
from typing import Optional

import click

from door_sense.calibration.sql_store import SqlCalibrationStore
from door_sense.calibration.store import CalibrationStoreError
from door_sense.config.settings import get_settings, load_settings_from_file, validate_settings
from door_sense.logger import setup_logging
from door_sense.sensing.engine import DoorDetectionEngine
from door_sense.sensing.samples import AccelerometerNormalizer, PositionSample
from door_sense.sensing.signal_quality import SignalQualityAnalyzer
from door_sense.services.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def get_settings_with_config(config_file: Optional[str] = None):
    """Get settings with optional config file."""
    if config_file:
        return load_settings_from_file(config_file)
    else:
        return get_settings()


@click.group()
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file'
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging'
)
@click.option(
    '--debug',
    is_flag=True,
    help='Enable debug mode'
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool, debug: bool):
    """Door/window state detection command line interface."""

    ctx.ensure_object(dict)

    ctx.obj['config_file'] = config
    ctx.obj['verbose'] = verbose
    ctx.obj['debug'] = debug

    settings = get_settings_with_config(config)
    setup_logging(settings)

    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled")
    elif verbose:
        logging.getLogger().setLevel(logging.INFO)
        logger.info("Verbose mode enabled")


@cli.command(context_settings={'ignore_unknown_options': True})
@click.argument('x', type=float)
@click.argument('y', type=float)
@click.argument('z', type=float)
@click.option(
    '--sensor-id',
    default='cli',
    help='Sensor identifier (default: cli)'
)
@click.option(
    '--raw',
    is_flag=True,
    help='Values are raw device units instead of g-force'
)
@click.option(
    '--quality',
    is_flag=True,
    help='Include a signal quality report'
)
@click.pass_context
def detect(ctx, x: float, y: float, z: float, sensor_id: str, raw: bool, quality: bool):
    """Classify a single accelerometer sample."""

    settings = get_settings_with_config(ctx.obj.get('config_file'))
    engine = DoorDetectionEngine.from_settings(settings)

    sample = PositionSample(x, y, z)
    if raw:
        sample = AccelerometerNormalizer(settings.device_scale).normalize(sample)

    result = engine.detect(sensor_id, sample.x, sample.y, sample.z)
    output = result.to_dict()

    if quality:
        report = SignalQualityAnalyzer().analyze(sample)
        output['signal_quality'] = {
            'magnitude': report.magnitude,
            'clarity_score': report.clarity_score,
            'magnitude_quality': report.magnitude_quality.value,
            'noise_level': report.noise_level,
            'signal_stability': report.signal_stability.value,
            'should_recalibrate': report.should_recalibrate,
            'recommendations': report.recommendations,
        }

    click.echo(json.dumps(output, indent=2))


@cli.command()
@click.argument('file', type=click.File('r'))
@click.option(
    '--calibrate',
    is_flag=True,
    help='Calibrate every sensor from the replayed telemetry afterwards'
)
@click.option(
    '--calibrated-by',
    default=None,
    help='Operator recorded with the calibrations'
)
@click.option(
    '--summary-only',
    is_flag=True,
    help='Print only the final summary'
)
@click.pass_context
def replay(ctx, file, calibrate: bool, calibrated_by: Optional[str], summary_only: bool):
    """Stream a JSON-lines telemetry file through the detection pipeline."""

    settings = get_settings_with_config(ctx.obj.get('config_file'))

    try:
        pipeline = IngestionPipeline.from_settings(settings)
    except CalibrationStoreError as e:
        logger.error(f"Failed to open calibration store: {e}")
        sys.exit(1)

    processed = 0
    unparseable = 0
    for line_number, line in enumerate(file, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            unparseable += 1
            logger.warning(f"Skipping line {line_number}: invalid JSON ({e.msg})")
            continue

        result = pipeline.handle(message)
        if result is None:
            continue
        processed += 1
        if not summary_only:
            click.echo(json.dumps(result.to_dict()))

    summary = {
        'processed': processed,
        'dropped': pipeline.dropped_count + unparseable,
        'statistics': pipeline.get_statistics(),
    }

    if calibrate:
        calibrations = {}
        try:
            for sensor_id in pipeline.history.sensor_ids():
                outcome = pipeline.calibrate(sensor_id, calibrated_by=calibrated_by)
                if outcome.success:
                    calibrations[sensor_id] = {
                        'success': True,
                        'closed_reference': outcome.record.closed_reference.to_dict(),
                        'replaced_previous': outcome.replaced_previous,
                    }
                else:
                    calibrations[sensor_id] = {
                        'success': False,
                        'error': outcome.error.code.value,
                        'message': outcome.error.message,
                    }
        except CalibrationStoreError as e:
            logger.error(f"Failed to store calibration: {e}")
            sys.exit(1)
        summary['calibrations'] = calibrations

    click.echo(json.dumps(summary, indent=2))


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command()
@click.option(
    '--url',
    help='Database URL (overrides config)'
)
@click.pass_context
def init(ctx, url: Optional[str]):
    """Create the calibration tables."""

    settings = get_settings_with_config(ctx.obj.get('config_file'))
    database_url = url or settings.database_url

    if not database_url:
        logger.error("No database URL configured, pass --url or set DOOR_SENSE_DATABASE_URL")
        sys.exit(1)

    try:
        store = SqlCalibrationStore(database_url, echo=settings.db_echo)
        store.close()
        logger.info("Database initialized successfully")
        click.echo("Calibration tables ready")
    except CalibrationStoreError as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show current configuration."""

    settings = get_settings_with_config(ctx.obj.get('config_file'))

    config_dict = settings.model_dump(exclude={'database_url'})
    config_dict['persistent_calibrations'] = bool(settings.database_url)

    click.echo(json.dumps(config_dict, indent=2, default=str))


@config.command()
@click.pass_context
def validate(ctx):
    """Validate configuration."""

    settings = get_settings_with_config(ctx.obj.get('config_file'))
    issues = validate_settings(settings)

    if issues:
        click.echo("Configuration issues found:")
        for issue in issues:
            click.echo(f"  - {issue}")
        sys.exit(1)

    click.echo("Configuration is valid")


@cli.command()
def version():
    """Show version information."""

    settings = get_settings()

    click.echo(f"door-sense v{settings.version}")
    click.echo(f"Environment: {settings.environment}")
    click.echo(f"Python: {sys.version}")


if __name__ == '__main__':
    cli()
