"""Task, task handle and waker primitives for stepping simulated work."""