"""
Showroom Processing Pipeline

Six synchronous stages per upload:
1. Intake - type sniffing, decoding, prior-output detection
2. Removal - background removal with a rendered ground shadow
3. Analysis - alpha bounds and photo mode
4. Conditioning - shadow intensity, edge softening, placement padding
5. Placement - canvas, scale and offset
6. Composite - background, subject, logo, JPEG export
"""
