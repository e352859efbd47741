from pwforge import GenerationRequest, generate_password_with_meta

def main() -> None:
    result = generate_password_with_meta(GenerationRequest())  # uses DEFAULT_CONFIG from config.py
    print("\n[pwforge password generator]")
    print(f"Generated password: {result.password}")
    print(f"Strength: {result.strength.label} (~{result.entropy_bits:.0f} bits)\n")

if __name__ == "__main__":
    main()
