import argparse

from .deconv import DeconvConfig, MAX_ITERATIONS
from .ricedeconv import RicianDeconv


def main(argv=None):
    parser = argparse.ArgumentParser(description="Rician deconvolution of a 3D magnitude NIfTI image.")
    parser.add_argument("-i", "--input", type=str, required=True, help="Noisy 3D scalar magnitude NIfTI image")
    parser.add_argument("-o", "--outdir", type=str, default=None, help="Output directory for deconvolved images")
    parser.add_argument("-b", "--sigma-blur", type=float, default=1.0, help="Gaussian PSF sigma in voxels")
    parser.add_argument("-n", "--sigma-noise", type=float, default=None,
                        help="Rician noise sigma (estimated from air space if omitted)")
    parser.add_argument("-l", "--lambda", dest="lam", type=float, default=0.1, help="Fidelity weight")
    parser.add_argument("--iterations", type=int, default=MAX_ITERATIONS, help="Number of gradient descent iterations")
    parser.add_argument("--corrected", action="store_true",
                        help="Use the I1/I0 likelihood ratio in the residual instead of the reference term")
    args = parser.parse_args(argv)

    # Splash text
    print("\nRicedeconv: Rician MRI Deconvolution")
    print("-" * 40)
    print(f"Input image: {args.input}")
    print(f"Residual mode: {'corrected' if args.corrected else 'reference'}\n")

    config = DeconvConfig(iterations=args.iterations, reference_compatible=not args.corrected)

    deconv = RicianDeconv(
        args.input,
        sigma_blur=args.sigma_blur,
        sigma_noise=args.sigma_noise,
        lam=args.lam,
        out_dir=args.outdir,
        config=config,
    )
    deconv.run()
    deconv.save_maps()


if __name__ == "__main__":
    main()
