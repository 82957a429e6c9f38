"""
Streaming writer.

Serializes an arbitrarily long sequence into a virtual file as a Typst array
binding, one batch at a time. The file reads the same whatever the batch size:

    #let data = (
      <item>,
      <item>,
    )

Every element carries a trailing comma, so a single item is still an array.
"""

import itertools
from typing import Any, Iterable

from quire.contexts.encoding import encode
from quire.contexts.encoding.context import EncodingContext
from quire.contexts.rendering.logger import _log_debug

DEFAULT_BATCH_SIZE = 100


def stream_virtual_file(
    session,
    path: str,
    items: Iterable[Any],
    variable_name: str = "data",
    context=None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """
    Write ``#let <variable_name> = (...)`` into a session's virtual file.

    The iterable is consumed lazily; only one batch of encoded items is held
    in memory at a time.

    Args:
        session: Session owning the virtual file
        path: Virtual file path
        items: Values to encode, in order
        variable_name: Name of the Typst binding
        context: EncodingContext or plain mapping used for every item
        batch_size: Items encoded per append

    Returns:
        Number of items written

    Raises:
        ValueError: batch_size is less than 1
        TypeError: An item has no encoding
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    context = EncodingContext.coerce(context)
    iterator = iter(items)
    count = 0

    session.set_virtual_file(path, f"#let {variable_name} = (\n")
    while True:
        batch = list(itertools.islice(iterator, batch_size))
        if not batch:
            break
        session.append_virtual_file(path, "".join(f"  {encode(item, context)},\n" for item in batch))
        count += len(batch)
    session.append_virtual_file(path, ")\n")

    _log_debug(f"Streamed {count} items into {path} as '{variable_name}'")
    return count
