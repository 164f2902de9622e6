"""Billing Domain - bank transfer payments reviewed by platform admins"""
