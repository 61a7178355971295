"""Market sentiment agent: headlines in, validated sentiment record out."""
