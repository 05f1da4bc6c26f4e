"""Engine contract, engine adapters, and the serialized invoker."""
