"""Pure domain layer: value objects, payable variants, capabilities, policies. No I/O."""
