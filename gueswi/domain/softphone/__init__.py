"""
Softphone Domain

Mock call control (dial, mute, hold, transfer, hang up) backed by
conversations. Every state change is pushed to the tenant over realtime.
"""
