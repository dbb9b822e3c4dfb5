"""OpenCL kernel source for the mean shift update"""

KERNEL_NAME = "meanShift"

# OpenCL Kernel Code
kernel_code = """
// One work item per query point: weighted centroid of the reference set
__kernel void meanShift(__global const float2* query,
                        __global const float2* reference,
                        const uint numQuery,
                        const uint numReference,
                        const float bandwidth,
                        __global float2* output) {

    size_t i = get_global_id(0);

    // global size is padded up to a multiple of the work-group size
    if (i >= numQuery) return;

    float2 p = query[i];

    // nearest reference point and its scaled squared distance,
    // subtracted from every exponent
    float minScaled = INFINITY;
    uint nearest = 0;
    for (uint j = 0; j < numReference; j++) {
        float d = distance(p, reference[j]) / bandwidth;
        if (d * d < minScaled) {
            minScaled = d * d;
            nearest = j;
        }
    }

    // centroid taken relative to the nearest point, so a lone or
    // coincident reference set adds an exact zero offset
    float2 anchor = reference[nearest];
    float baseWeight = 1.0f / (bandwidth * sqrt(2.0f * M_PI_F));
    float2 shift = (float2)(0.0f, 0.0f);
    float scale = 0.0f;

    for (uint j = 0; j < numReference; j++) {
        float d = distance(p, reference[j]) / bandwidth;
        float weight = baseWeight * exp(-0.5f * (d * d - minScaled));

        shift += (reference[j] - anchor) * weight;
        scale += weight;
    }

    output[i] = anchor + shift / scale;
}
"""
