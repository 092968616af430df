import logging

from .ciphertext_factory import RadixCiphertextFactory
from .compression import CompressionCodec
from .constants import RadixCryptographicParameters
from .integer_engine import RadixIntegerEngine
from .key_factory import KeyFactory
from .radix import OperationFlavor, OverflowPolicy

# Criação da instância global dos parâmetros
crypto_params = RadixCryptographicParameters.message_2_carry_2()

# Criação das factories
ciphertext_factory = RadixCiphertextFactory(crypto_params)
key_factory = KeyFactory(crypto_params)
codec = CompressionCodec()


# --- FUNÇÃO DE LOG PARA DEPURAÇÃO ---
def log_radix(name, radix):
    """Imprime os metadados públicos de um inteiro radix."""
    print(f"--- LOG: {name} ---")
    print(f"    {radix!r}")
    print(f"    Graus: {[block.degree for block in radix.blocks]}")
    print("-" * 20)


# --- Demonstração de Uso ---
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    crypto_params.print_parameters_summary()
    print("-" * 50)

    keyset = key_factory.generate_full_keyset()
    client_key = keyset["client_key"]
    bootstrapper = keyset["bootstrapper"]
    print("Chaves geradas usando KeyFactory.")
    print("-" * 50)

    print("--- COMPRESSÃO DE CIPHERTEXT ---")
    ct = ciphertext_factory.encrypt_radix(12_837, client_key, bit_width=16)
    compressed = codec.compress(ct)
    restored = codec.decompress(compressed)
    print(f"Palavras guardadas: {compressed.stored_words} de {ct.num_blocks * (crypto_params.LWE_DIMENSION + 1)}")
    print(f"Idêntico bit a bit: {restored == ct}")
    print(f"Valor descomprimido: {ciphertext_factory.decrypt_radix(restored, client_key)}")
    print("-" * 50)

    with RadixIntegerEngine(bootstrapper, max_workers=4) as engine:
        print("--- SOMA COM WRAPAROUND (8 bits) ---")
        a = ciphertext_factory.encrypt_radix(255, client_key, bit_width=8)
        b = ciphertext_factory.encrypt_radix(1, client_key, bit_width=8)
        total = engine.add(a, b)
        log_radix("255 + 1", total)
        print(f"Resultado esperado: 0, obtido: {ciphertext_factory.decrypt_radix(total, client_key)}")
        print("-" * 50)

        print("--- OVERFLOW REPORTADO ---")
        a = ciphertext_factory.encrypt_radix(
            255, client_key, bit_width=8, overflow_policy=OverflowPolicy.REPORT
        )
        b = ciphertext_factory.encrypt_radix(
            1, client_key, bit_width=8, overflow_policy=OverflowPolicy.REPORT
        )
        value, overflow = ciphertext_factory.decrypt_radix_with_overflow(
            engine.add(a, b), client_key
        )
        print(f"Valor: {value}, overflow: {overflow}")
        print("-" * 50)

        print("--- DESLOCAMENTO E MULTIPLICAÇÃO ---")
        x = ciphertext_factory.encrypt_radix(673, client_key, bit_width=32)
        shifted = engine.right_shift(x, 6)
        print(f"673 >> 6 = {ciphertext_factory.decrypt_radix(shifted, client_key)}")

        y = ciphertext_factory.encrypt_radix(23, client_key, bit_width=8)
        z = ciphertext_factory.encrypt_radix(11, client_key, bit_width=8)
        product = engine.mul(y, z, OperationFlavor.SMART)
        print(f"23 * 11 mod 256 = {ciphertext_factory.decrypt_radix(product, client_key)}")
        print(f"PBS executados: {bootstrapper.pbs_count}")
        print(f"Fases despachadas: {engine.scheduler.phase_count}")
