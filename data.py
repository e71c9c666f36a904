# data.py
import json
import logging
import os
import tempfile
from typing import List
from pathlib import Path

from host import HostRecord

logger = logging.getLogger(__name__)


class InventoryLoadError(Exception):
    """The persisted inventory exists but cannot be read."""


def load_host_data(json_file: Path) -> List[HostRecord]:
    """Loads the host inventory from the JSON file.

    Args:
        json_file (Path): Path to the JSON file.

    Returns:
        List[HostRecord]: The stored records, or an empty list if the file
        does not exist yet.

    Raises:
        InventoryLoadError: If the file cannot be read or does not hold a
        valid inventory.
    """
    try:
        with json_file.open("r", encoding="utf-8") as file:
            data = json.load(file)
    except FileNotFoundError:
        logger.warning("JSON file not found: %s. Starting with an empty inventory.", json_file)
        return []
    except json.JSONDecodeError as err:
        raise InventoryLoadError(f"Error decoding JSON data in {json_file}: {err}") from err
    except OSError as err:
        raise InventoryLoadError(f"Could not read {json_file}: {err}") from err

    if data is None:
        return []
    if not isinstance(data, list):
        raise InventoryLoadError(f"{json_file} does not contain a JSON array")

    try:
        records = [HostRecord.from_dict(entry) for entry in data]
    except ValueError as err:
        raise InventoryLoadError(f"Malformed host record in {json_file}: {err}") from err

    logger.info("Loaded %d host records from %s", len(records), json_file)
    return records


def save_host_data(records: List[HostRecord], json_file: Path) -> bool:
    """Saves the host inventory to the JSON file.

    The file is rewritten in full through a temporary file in the same
    directory, so a failed write leaves the previous contents in place.

    Args:
        records (List[HostRecord]): The inventory to save.
        json_file (Path): Path to the JSON file.

    Returns:
        bool: True if the file was written.
    """
    tmp_name = None
    try:
        directory = json_file.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{json_file.name}.", suffix=".tmp", dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump([record.to_dict() for record in records], file, indent=2, ensure_ascii=False)
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmp_name, json_file)
        tmp_name = None
        logger.debug("Saved %d host records to %s", len(records), json_file)
        return True
    except OSError as err:
        logger.error("File system error while saving JSON data: %s", err)
    except (TypeError, ValueError) as err:
        logger.error("Could not serialize host records: %s", err)
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError as err:
                logger.debug("Could not remove temporary file %s: %s", tmp_name, err)
    return False
