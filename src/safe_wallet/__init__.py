"""Safe wallet — UTXO accounting and transaction construction."""
