"""Realtime feature for Server-Sent Events delivery.

Clients open a personal stream (events addressed to them) and an
announcement stream (events for their whole tenant).

Usage:
    curl -N -H "X-User-Id: u1" -H "X-Tenant-Id: t1" http://localhost:8000/api/v1/sse/personal
"""
