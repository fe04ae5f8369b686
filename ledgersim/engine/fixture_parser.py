# ledgersim/engine/fixture_parser.py
#
# Loads and validates YAML chain fixtures: the accounts, contracts, starting
# time and configuration a test chain is built from. Contract handlers are
# referenced as "module:Class" and imported on demand.

import importlib
import logging

import yaml

from ledgersim.engine.blockchain import Blockchain
from ledgersim.errors import FixtureValidationError

logger = logging.getLogger(__name__)


def _validate_fixture_structure(data):
    """
    Validates the fixture structure (accounts, contracts, time, config).
    Raises FixtureValidationError with a specific message if any check fails.
    """
    if not isinstance(data, dict):
        raise FixtureValidationError("The fixture must be a dictionary.")

    if 'accounts' not in data:
        raise FixtureValidationError("Fixture file is missing required section: accounts")
    if not isinstance(data['accounts'], list):
        raise FixtureValidationError("The 'accounts' section must be a list.")
    for name in data['accounts']:
        if not isinstance(name, str):
            raise FixtureValidationError(f"Account names must be strings, got: {name!r}")

    contracts = data.get('contracts', [])
    if not isinstance(contracts, list):
        raise FixtureValidationError("The 'contracts' section must be a list.")
    for contract in contracts:
        if not isinstance(contract, dict):
            raise FixtureValidationError("Each contract entry must be a dictionary.")
        missing = [key for key in ('name', 'handler') if key not in contract]
        if missing:
            raise FixtureValidationError(f"Contract entry is missing required key(s): {', '.join(missing)}")
        if ':' not in str(contract['handler']):
            raise FixtureValidationError(
                f"Contract handler must be given as 'module:Class', got: {contract['handler']}")

    time = data.get('time', {})
    if not isinstance(time, dict):
        raise FixtureValidationError("The 'time' section must be a dictionary.")
    for key in ('timestamp_ms', 'block_num'):
        if key in time and not isinstance(time[key], (int, float)):
            raise FixtureValidationError(f"'time.{key}' must be a number.")
    if time.get('timestamp_ms', 0) < 0:
        raise FixtureValidationError("'time.timestamp_ms' must not be negative.")

    if not isinstance(data.get('config', {}), dict):
        raise FixtureValidationError("The 'config' section must be a dictionary.")


def load_fixture_from_file(file_path):
    """
    Loads and validates a chain fixture from a file path.

    :param file_path: A string containing the path to the YAML file.
    :return: A Python dictionary containing the parsed fixture.
    :raises FixtureValidationError: If the file is not found, poorly formatted, or fails validation.
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise FixtureValidationError(f"The file could not be found at path: {file_path}")
    except yaml.YAMLError as e:
        raise FixtureValidationError(f"Error parsing YAML file: {e}")
    except UnicodeDecodeError as e:
        raise FixtureValidationError(f"Failed to decode file using UTF-8 (Check file encoding): {e}")

    # Empty file or only comments
    if data is None:
        raise FixtureValidationError("The YAML file is empty or invalid.")

    _validate_fixture_structure(data)

    return data


def load_handler(reference):
    """Import the contract class named by ``"package.module:ClassName"``."""
    module_name, _, class_name = reference.partition(':')
    try:
        module = importlib.import_module(module_name)
        handler = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        logger.error(f"Failed to load contract handler {reference}: {e}")
        raise
    logger.info(f"Loaded contract handler {class_name} from {module_name}")
    return handler


def build_blockchain(data) -> Blockchain:
    """Build a ready chain from a validated fixture dictionary."""
    time = data.get('time', {})
    bc = Blockchain(
        timestamp=time.get('timestamp_ms', 0),
        block_num=time.get('block_num', 0),
        config=data.get('config', {}),
    )

    bc.create_accounts(*data['accounts'])
    for contract in data.get('contracts', []):
        bc.create_contract(contract['name'], load_handler(contract['handler']), folder=contract.get('folder'))

    return bc
