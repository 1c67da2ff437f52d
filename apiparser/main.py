import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

import click
from pythonjsonlogger import jsonlogger

from . import __version__
from .config import VALID_LOG_LEVELS, ToolkitConfig, default_config, load_config, validate_config
from .correlation import APIRequest, APIResponse, CorrelationDetector
from .errors import APIError
from .jsonpath import JSONPathParser
from .response import ResponseParser
from .schema import to_json_schema_text
from .utils.diff import diff_json, diff_schemas
from .values import to_text

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "WARNING", log_file: Optional[str] = None):
    """Setup structured logging."""
    loggers = [logging.getLogger(name) for name in ['apiparser', '__main__']]

    formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(name)s %(levelname)s %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    for logger_instance in loggers:
        logger_instance.handlers.clear()
        logger_instance.setLevel(getattr(logging, log_level.upper()))
        logger_instance.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        for logger_instance in loggers:
            logger_instance.addHandler(file_handler)


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _read(path: str) -> bytes:
    with open(path, 'rb') as f:
        return f.read()


def _echo_json(data: Any):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _parse_headers(values: Tuple[str, ...]) -> Dict[str, List[str]]:
    headers: Dict[str, List[str]] = {}
    for value in values:
        name, sep, content = value.partition(':')
        if not sep or not name.strip():
            raise click.BadParameter(f"expected 'Name: value', got '{value}'", param_hint='--header')
        headers.setdefault(name.strip(), []).append(content.strip())
    return headers


def _config(ctx: click.Context) -> ToolkitConfig:
    return ctx.obj['config']


@click.group(help="apiparser - Query, profile and correlate JSON API responses")
@click.option('--config', 'config_path', type=click.Path(), default=None,
              help='JSON configuration file')
@click.option('--log-level', default=None, type=click.Choice(VALID_LOG_LEVELS, case_sensitive=False),
              help='Logging level (overrides the configuration)')
@click.option('--log-file', default=None, help='Log file path')
@click.pass_context
def app(ctx, config_path, log_level, log_file):
    """apiparser CLI."""
    config = default_config()
    if config_path:
        try:
            config = load_config(config_path)
            validate_config(config)
        except (OSError, ValueError, KeyError) as e:
            _fail(f"Invalid configuration: {e}")

    setup_logging(log_level or config.logging.level, log_file or config.logging.file or None)

    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@app.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.argument('path')
def query(file, path):
    """Evaluate a path expression against a JSON document."""
    try:
        parser = JSONPathParser.from_json(_read(file))
        click.echo(to_text(parser.evaluate(path)))
    except APIError as e:
        _fail(str(e))


@app.command(name='filter')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.argument('path')
@click.argument('expression')
def filter_command(file, path, expression):
    """Print the elements of the array at PATH matching EXPRESSION."""
    try:
        parser = JSONPathParser.from_json(_read(file))
        _echo_json(parser.filter(path, expression))
    except APIError as e:
        _fail(str(e))


@app.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--title', default='', help='Schema title')
@click.option('--description', default='', help='Schema description')
@click.option('--raw', is_flag=True, help='Print the inferred field tree instead of JSON Schema')
@click.pass_context
def schema(ctx, files, title, description, raw):
    """Infer one schema from one or more JSON sample files."""
    parser = ResponseParser('application/json', _config(ctx))
    try:
        result = parser.detect_schema_from_samples(_read(f) for f in files)
    except APIError as e:
        _fail(str(e))

    result.title = title
    result.description = description

    if raw:
        _echo_json(result.to_dict())
    else:
        click.echo(to_json_schema_text(result))


@app.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--header', 'header_values', multiple=True, help="Response header as 'Name: value'")
@click.pass_context
def tokens(ctx, file, header_values):
    """Detect API keys and tokens in a JSON response."""
    headers = _parse_headers(header_values)
    parser = ResponseParser('application/json', _config(ctx))
    try:
        found = parser.detect_tokens(_read(file), headers)
    except APIError as e:
        _fail(str(e))

    _echo_json([token.to_dict() for token in found])


@app.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--url', default='', help='URL of the request that produced the response')
@click.option('--header', 'header_values', multiple=True, help="Response header as 'Name: value'")
@click.pass_context
def params(ctx, file, url, header_values):
    """Discover API parameters from a JSON response."""
    headers = _parse_headers(header_values)
    parser = ResponseParser('application/json', _config(ctx))
    try:
        found = parser.discover_parameters(url, headers, _read(file))
    except APIError as e:
        _fail(str(e))

    _echo_json([param.to_dict() for param in found])


@app.command()
@click.argument('responses', nargs=-1, required=True)
@click.option('--graph', 'as_graph', is_flag=True, help='Print the correlation graph')
def correlate(responses, as_graph):
    """Detect correlations between responses given as URL=FILE pairs."""
    detector = CorrelationDetector()
    session = detector.create_session('cli')

    for pair in responses:
        url, sep, path = pair.rpartition('=')
        if not sep or not url:
            raise click.BadParameter(f"expected URL=FILE, got '{pair}'", param_hint='RESPONSES')
        try:
            data = _read(path)
        except OSError as e:
            _fail(f"Cannot read {path}: {e}")

        request = APIRequest(url=url)
        request_id = session.add_request(request)
        session.add_response(APIResponse(data=data, request=request), request_id)

    correlations = detector.detect_correlations('cli')

    if as_graph:
        click.echo(detector.graph_to_json(detector.build_graph(correlations)))
    else:
        _echo_json([correlation.to_dict() for correlation in correlations])


@app.command()
@click.argument('old', type=click.Path(exists=True, dir_okay=False))
@click.argument('new', type=click.Path(exists=True, dir_okay=False))
@click.option('--schema', 'compare_schema', is_flag=True, help='Compare inferred schemas instead of values')
@click.pass_context
def diff(ctx, old, new, compare_schema):
    """Compare two JSON documents."""
    if compare_schema:
        parser = ResponseParser('application/json', _config(ctx))
        try:
            result = diff_schemas(parser.detect_schema(_read(old)), parser.detect_schema(_read(new)))
        except APIError as e:
            _fail(str(e))
    else:
        result = diff_json(_read(old), _read(new))
        if result and 'error' in result:
            _fail(result['error'])

    if result is None:
        click.echo("No differences")
    else:
        _echo_json(result)


@app.command()
@click.argument('config_file')
def validate(config_file):
    """Validate a configuration file."""

    try:
        config = load_config(config_file)
        validate_config(config)
        click.echo("✓ Configuration is valid")
        click.echo(f"Sample size: {config.inference.sample_size}")
        click.echo(f"Max depth: {config.discovery.max_depth}")
        click.echo(f"Log level: {config.logging.level}")
    except (OSError, ValueError, KeyError) as e:
        click.echo(f"✗ Configuration validation failed: {e}", err=True)
        sys.exit(1)


@app.command()
def version():
    """Show version information."""
    click.echo(f"apiparser v{__version__}")
    click.echo("JSON API response query, schema inference and correlation toolkit")


if __name__ == "__main__":
    app()
