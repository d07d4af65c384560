"""HTTP surface for the sizefit compression driver."""
