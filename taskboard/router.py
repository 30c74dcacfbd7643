"""Shared router for board tool endpoints."""

from __future__ import annotations

from fastapi import APIRouter

board_router = APIRouter()
