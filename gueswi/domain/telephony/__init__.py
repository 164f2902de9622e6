"""Telephony Domain - extensions, IVR menus, queues, recordings, provisioning and IVR TTS"""
