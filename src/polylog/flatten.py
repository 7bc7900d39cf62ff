"""
Error-graph flattener.

Exceptions reference other exceptions (``error``, ``original_error``,
``cause``...), possibly in cycles. ``ErrorGraphFlattener.emit`` turns one log
call into a bounded, depth-first list of records that share a group id.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator, Mapping
from typing import Any

from polylog.config.options import LoggersOptions
from polylog.policy import Decision
from polylog.records import SCALARS, LogRecord, RecordBuilder, prune

Dispatch = Callable[[Decision, LogRecord], bool]


class ErrorSet:
    """Identity set of exceptions already emitted by one originating call."""

    def __init__(self) -> None:
        self._errors: dict[int, BaseException] = {}

    def __contains__(self, error: object) -> bool:
        return id(error) in self._errors

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self._errors.values())

    def add(self, error: BaseException) -> None:
        self._errors.setdefault(id(error), error)


def new_group_id() -> str:
    return str(uuid.uuid1())


class ErrorGraphFlattener:
    """Emits the records of one log call.

    Args:
        builder: Builds each record
        dispatch: Hands a record to its sinks; returns ``False`` when the
            record was dropped, which stops the recursion
    """

    def __init__(self, options: LoggersOptions, builder: RecordBuilder, dispatch: Dispatch):
        self.builder = builder
        self.dispatch = dispatch
        self.error_keys = list(options.error_keys)
        self.max_errors = options.max_errors
        self.max_error_depth = options.max_error_depth
        self.max_depth = options.max_depth
        self.max_array_length = options.max_array_length

    def emit(
        self,
        decision: Decision,
        message: Any = None,
        context: Any = None,
        seen: ErrorSet | None = None,
        depth: int = 0,
        group_id: str | None = None,
    ) -> list[LogRecord]:
        """Build and dispatch the record for ``message``/``context`` and recurse.

        Returns:
            Every record dispatched, in order
        """
        if seen is None:
            seen = ErrorSet()

        record, context_data = self.builder.build(decision, message, context, depth)

        # The message itself is never logged again
        if isinstance(message, BaseException):
            seen.add(message)

        expand = depth < self.max_error_depth

        if context_data is not None:
            if not expand:
                context_data = None
            else:
                for value in context_data.values():
                    if isinstance(value, BaseException):
                        seen.add(value)

        children: list[BaseException] = []
        data = record.data
        if data is not None:
            if expand:
                context = self._expand_errors(data, context, seen, children, record)

            # With no message, use the error
            if not record.message and isinstance(data.get("error"), SCALARS):
                record.message = str(data["error"])

            record.data = prune(data, self.max_depth, self.max_array_length, self.builder.redactor(decision))

        if (context_data or children) and group_id is None:
            group_id = new_group_id()
        record.group_id = group_id
        record.depth = depth

        if not self.dispatch(decision, record):
            return []

        emitted = [record]

        if context_data:
            emitted.extend(self.emit(decision, context_data, None, seen, depth + 1, group_id))

        for child in children:
            emitted.extend(self.emit(decision, child, context, seen, depth + 1, group_id))

        return emitted

    def _expand_errors(
        self,
        data: dict[str, Any],
        context: Any,
        seen: ErrorSet,
        children: list[BaseException],
        record: LogRecord,
    ) -> Any:
        """Collect unseen exceptions under error keys; summarize every one of them as a string."""
        context_copied = False
        for key in self.error_keys:
            value = data.get(key)
            if not isinstance(value, BaseException):
                continue

            if len(seen) < self.max_errors and value not in seen:
                seen.add(value)
                children.append(value)

            # Otherwise it will reappear in the child's record
            if isinstance(context, Mapping) and key in context:
                if not context_copied:
                    context = dict(context)
                    context_copied = True
                del context[key]
            elif context is value:
                context = None

            summary = self.builder.to_string(value)
            data[key] = summary
            if record.error is None:
                record.error = summary

        if record.error is None and isinstance(data.get("error"), str):
            record.error = data["error"]
        return context
