"""Booking lifecycle rules independent of storage and transport."""
