# create_demo_assets.py
import os
import sys

from PIL import Image, ImageDraw

HERE = os.path.dirname(os.path.abspath(__file__))
SIZE = (300, 300)


def draw_hat() -> Image.Image:
    """A 300x300 overlay: transparent except for a red hat on the top band."""
    hat = Image.new("RGBA", SIZE, (0, 0, 0, 0))
    draw = ImageDraw.Draw(hat)
    # crown
    draw.polygon([(90, 95), (150, 10), (210, 95)], fill=(200, 16, 46, 255))
    # brim
    draw.rounded_rectangle((60, 90, 240, 115), radius=10, fill=(200, 16, 46, 255))
    # band and star
    draw.rectangle((95, 80, 205, 90), fill=(255, 222, 0, 255))
    draw.ellipse((140, 2, 160, 22), fill=(255, 255, 255, 255))
    return hat


def draw_demo() -> Image.Image:
    """A 300x300 opaque background with a vertical gradient and a face."""
    demo = Image.new("RGB", SIZE)
    draw = ImageDraw.Draw(demo)
    for y in range(SIZE[1]):
        shade = int(120 + 100 * y / SIZE[1])
        draw.line([(0, y), (SIZE[0], y)], fill=(70, shade, 200))
    draw.ellipse((85, 80, 215, 230), fill=(241, 194, 125))
    draw.ellipse((120, 135, 135, 150), fill=(40, 40, 40))
    draw.ellipse((165, 135, 180, 150), fill=(40, 40, 40))
    draw.arc((120, 160, 180, 205), start=20, end=160, fill=(120, 40, 40), width=4)
    return demo


def create_all_assets(output_dir: str) -> None:
    os.makedirs(output_dir, exist_ok=True)
    draw_hat().save(os.path.join(output_dir, "hat.png"), format="PNG")
    draw_demo().save(os.path.join(output_dir, "demo.png"), format="PNG")


if __name__ == "__main__":
    output_dir = sys.argv[1] if len(sys.argv) > 1 else os.path.join(HERE, "images")
    create_all_assets(output_dir)
    print("Asset creation script finished successfully:", output_dir)
