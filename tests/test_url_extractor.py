from blog_cms.services.url_extractor import (
    PatternMatcher,
    UrlExtractor,
    cdn_host_matcher,
    default_extractor,
    file_name_from_url,
    guess_mime_type,
    image_extension_matcher,
    strip_query,
    uploads_path_matcher,
)


def test_extracts_generic_image_url_from_single_quoted_src():
    urls = default_extractor().extract("<img src='https://cdn.example/a.jpg'>")
    assert urls == {"https://cdn.example/a.jpg"}


def test_overlapping_patterns_count_once():
    content = '<img src="https://ik.imagekit.io/demo/blog/photo.JPG?tr=w-300">'
    urls = default_extractor().extract(content)
    assert urls == {"https://ik.imagekit.io/demo/blog/photo.JPG?tr=w-300"}


def test_extraction_is_deterministic_and_duplicate_free():
    content = (
        '<p><img src="https://ik.imagekit.io/demo/a.png"></p>'
        '<p><img src="https://ik.imagekit.io/demo/a.png"></p>'
        "![alt](https://example.com/img/b.webp) and /uploads/blog/c.gif"
    )
    extractor = default_extractor()
    first = extractor.extract(content)
    second = extractor.extract(content)
    assert first == second
    assert first == {
        "https://ik.imagekit.io/demo/a.png",
        "https://example.com/img/b.webp",
        "/uploads/blog/c.gif",
    }


def test_imagekit_url_without_extension_is_recognized():
    urls = default_extractor().extract('<img src="https://ik.imagekit.io/demo/tr:w-100/asset-123">')
    assert urls == {"https://ik.imagekit.io/demo/tr:w-100/asset-123"}


def test_uploads_path_inside_absolute_url_is_not_double_counted():
    urls = default_extractor().extract('<img src="https://blog.example.com/uploads/2024/a.png">')
    assert urls == {"https://blog.example.com/uploads/2024/a.png"}


def test_s3_public_url():
    content = '<img src="https://my-bucket.s3.us-east-1.amazonaws.com/articles/key-1">'
    assert default_extractor().extract(content) == {"https://my-bucket.s3.us-east-1.amazonaws.com/articles/key-1"}


def test_html_entities_and_trailing_punctuation_are_normalized():
    content = 'See https://cdn.example/pic.png. Also <img src="https://cdn.example/x.jpg?a=1&amp;b=2">'
    urls = default_extractor().extract(content)
    assert urls == {"https://cdn.example/pic.png", "https://cdn.example/x.jpg?a=1&b=2"}


def test_non_image_links_are_ignored():
    content = '<a href="https://example.com/page.html">x</a> https://example.com/doc.pdf'
    assert default_extractor().extract(content) == set()


def test_empty_content_returns_empty_set():
    extractor = default_extractor()
    assert extractor.extract(None) == set()
    assert extractor.extract("") == set()


def test_registered_matcher_extends_extraction():
    extractor = UrlExtractor([image_extension_matcher()])
    content = '<img src="https://media.example.net/raw/abc123">'
    assert extractor.extract(content) == set()

    extractor.register(cdn_host_matcher("media.example.net"))
    assert extractor.extract(content) == {"https://media.example.net/raw/abc123"}


def test_custom_pattern_matcher():
    matcher = PatternMatcher("static", r"https://static\.example\.org/\S+?(?=[\"'])")
    assert matcher.matches('src="https://static.example.org/x/y"') == {"https://static.example.org/x/y"}


def test_extract_many_unions_texts():
    extractor = UrlExtractor([uploads_path_matcher()])
    urls = extractor.extract_many(['<img src="/uploads/a.png">', None, '<img src="/uploads/b.png">'])
    assert urls == {"/uploads/a.png", "/uploads/b.png"}


def test_file_name_strips_query_parameters():
    assert file_name_from_url("https://cdn.example/path/a.jpg?tr=w-300#top") == "a.jpg"
    assert file_name_from_url("/uploads/blog/b%20c.png?v=2") == "b c.png"
    assert file_name_from_url("https://cdn.example/") == "image"


def test_strip_query_and_mime_type():
    assert strip_query("https://cdn.example/a.jpg?tr=w-300") == "https://cdn.example/a.jpg"
    assert guess_mime_type("https://cdn.example/a.JPEG?x=1") == "image/jpeg"
    assert guess_mime_type("https://cdn.example/a.webp") == "image/webp"
