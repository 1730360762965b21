"""JSON shapes for the dashboard endpoints."""

from dataclasses import asdict

from .temporal import classify, coerce_instant


def _iso(value, tz=None):
    instant = coerce_instant(value, tz)
    return instant.isoformat() if instant is not None else None


def task_payload(task, now, student_names=None):
    payload = {
        "id": str(task.id),
        "user_id": str(task.user_id),
        "title": task.title,
        "priority": task.priority,
        "due_date": _iso(task.due_date, now.tzinfo),
        "completed": task.completed,
        "completed_at": _iso(task.completed_at, now.tzinfo),
        "created_at": _iso(task.created_at, now.tzinfo),
        "state": str(classify(task, now)),
    }
    if student_names is not None:
        payload["student_name"] = student_names.get(str(task.user_id), "Unknown User")
    return payload


def tasks_payload(tasks, now, student_names=None):
    return [task_payload(task, now, student_names) for task in tasks]


def rollup_payload(rollup):
    return asdict(rollup)


def grid_payload(months):
    return [
        {
            "label": month.label,
            "leading_slots": month.leading_slots,
            "cells": [asdict(cell) for cell in month.cells],
        }
        for month in months
    ]


def series_payload(series, chart_range):
    return {
        "range": str(chart_range),
        "ceiling": series.ceiling,
        "points": [asdict(point) for point in series.points],
    }


def page_payload(page):
    return {
        "number": page.number,
        "num_pages": page.paginator.num_pages,
        "count": page.paginator.count,
        "has_next": page.has_next(),
        "has_previous": page.has_previous(),
    }
